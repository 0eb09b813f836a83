"""Utility modules for BUGTRAIL."""

from bugtrail.utils.errors import (
    BugtrailError,
    ExitCode,
    sanitize_message,
)
from bugtrail.utils.locks import AsyncReadWriteLock
from bugtrail.utils.logging import (
    get_logger,
    log_message,
    setup_logging,
)

__all__ = [
    "AsyncReadWriteLock",
    "BugtrailError",
    "ExitCode",
    "get_logger",
    "log_message",
    "sanitize_message",
    "setup_logging",
]
