"""Base exceptions, exit codes and message sanitizing for BUGTRAIL.

Every exception raised by the package derives from BugtrailError and
carries an exit code so the CLI can report failures consistently.
"""

import re
from collections.abc import Iterable
from enum import IntEnum
from typing import ClassVar

# Maximum length for error details taken from remote responses.
# Prevents PII leakage and huge HTML payloads in messages and logs.
MAX_ERROR_BODY_LENGTH = 200

REDACTED = "[REDACTED]"

# Linear personal and OAuth keys have recognisable prefixes; redact any that
# slip into remote error text even when the caller did not pass them in.
_KEY_LIKE_PATTERN = re.compile(r"\blin_(?:api|oauth)_[A-Za-z0-9_-]+")
_BEARER_PATTERN = re.compile(r"(?i)\b(bearer)\s+\S+")


class ExitCode(IntEnum):
    """Exit codes reported by the CLI."""

    SUCCESS = 0
    GENERAL_ERROR = 1
    AUTHENTICATION_FAILED = 2
    INVALID_CONFIG = 3
    NETWORK_ERROR = 4
    CREATION_FAILED = 5
    CONNECTION_FAILED = 6


class BugtrailError(Exception):
    """Base exception for BUGTRAIL errors.

    All custom exceptions in this package inherit from this class.
    Each exception type has an associated exit code.
    """

    _default_exit_code: ClassVar[ExitCode] = ExitCode.GENERAL_ERROR

    def __init__(self, message: str, exit_code: ExitCode | None = None) -> None:
        super().__init__(message)
        self._exit_code = exit_code

    @property
    def exit_code(self) -> ExitCode:
        """Get the exit code for this exception."""
        if self._exit_code is not None:
            return self._exit_code
        return self.__class__._default_exit_code


def sanitize_message(
    message: str,
    secrets: Iterable[str | None] = (),
    max_length: int = MAX_ERROR_BODY_LENGTH,
) -> str:
    """Strip credential material from a message and bound its length.

    Args:
        message: Raw message (exception text, response body, ...)
        secrets: Exact values to redact (e.g. the API key in use)
        max_length: Maximum length of the returned message

    Returns:
        Message safe to attach to an error or write to a log
    """
    result = message
    for secret in secrets:
        if secret:
            result = result.replace(secret, REDACTED)
    result = _KEY_LIKE_PATTERN.sub(REDACTED, result)
    result = _BEARER_PATTERN.sub(lambda m: f"{m.group(1)} {REDACTED}", result)
    if len(result) > max_length:
        result = result[:max_length] + "..."
    return result


__all__ = [
    "ExitCode",
    "BugtrailError",
    "MAX_ERROR_BODY_LENGTH",
    "REDACTED",
    "sanitize_message",
]
