"""Exceptions raised by ticketing integrations.

This module defines the exception hierarchy for the ticketing package:
- TicketingError: Base exception for all ticketing failures
- AuthenticationFailedError: Remote service rejected the credentials
- TicketingNetworkError: Transport failure, timeout or unreadable response
- InvalidConfigError: Missing credentials or required provider settings
- CreationFailedError: The remote ticket creation call failed
- ConnectionFailedError: The connection check could not be performed

Each exception carries a stable ``kind`` tag used when the error crosses
the calling application's boundary (see ``to_dict()``). Details are passed
through ``sanitize_message`` on construction so no raw credential material
ends up in an error.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, ClassVar

from bugtrail.utils.errors import BugtrailError, ExitCode, sanitize_message


class TicketingError(BugtrailError):
    """Base exception for ticketing failures.

    Attributes:
        detail: Sanitized human-readable detail
        kind: Stable tag identifying the error variant
    """

    kind: ClassVar[str] = "TicketingError"
    prefix: ClassVar[str] = "Ticketing error"

    def __init__(self, detail: str, *, secrets: Iterable[str | None] = ()) -> None:
        """Initialize TicketingError.

        Args:
            detail: What went wrong
            secrets: Values to redact from the detail (e.g. the API key in use)
        """
        self.detail = sanitize_message(detail, secrets)
        super().__init__(f"{self.prefix}: {self.detail}")

    def to_dict(self) -> dict[str, Any]:
        """Serializable shape handed to the calling application."""
        return {"kind": self.kind, "message": self.detail}


class AuthenticationFailedError(TicketingError):
    """Raised when the remote service rejects the supplied credentials."""

    kind = "AuthenticationFailed"
    prefix = "Authentication failed"
    _default_exit_code: ClassVar[ExitCode] = ExitCode.AUTHENTICATION_FAILED


class TicketingNetworkError(TicketingError):
    """Raised for transport failures, timeouts and unreadable responses."""

    kind = "NetworkError"
    prefix = "Network error"
    _default_exit_code: ClassVar[ExitCode] = ExitCode.NETWORK_ERROR


class InvalidConfigError(TicketingError):
    """Raised when credentials or required provider settings are missing."""

    kind = "InvalidConfig"
    prefix = "Invalid configuration"
    _default_exit_code: ClassVar[ExitCode] = ExitCode.INVALID_CONFIG


class CreationFailedError(TicketingError):
    """Raised when the remote ticket creation call fails."""

    kind = "CreationFailed"
    prefix = "Ticket creation failed"
    _default_exit_code: ClassVar[ExitCode] = ExitCode.CREATION_FAILED


class ConnectionFailedError(TicketingError):
    """Raised when a connection check cannot be performed."""

    kind = "ConnectionFailed"
    prefix = "Connection check failed"
    _default_exit_code: ClassVar[ExitCode] = ExitCode.CONNECTION_FAILED


_ERROR_CLASSES: tuple[type[TicketingError], ...] = (
    AuthenticationFailedError,
    TicketingNetworkError,
    InvalidConfigError,
    CreationFailedError,
    ConnectionFailedError,
)


def exit_code_for_kind(kind: str) -> ExitCode:
    """Map a serialized error ``kind`` back to its CLI exit code."""
    for error_class in _ERROR_CLASSES:
        if error_class.kind == kind:
            return error_class._default_exit_code
    return ExitCode.GENERAL_ERROR


__all__ = [
    "TicketingError",
    "AuthenticationFailedError",
    "TicketingNetworkError",
    "InvalidConfigError",
    "CreationFailedError",
    "ConnectionFailedError",
    "exit_code_for_kind",
]
