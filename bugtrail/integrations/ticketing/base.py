"""Base class for ticketing integrations.

This module defines TicketingIntegration, the abstract contract every
issue tracker provider implements:

- authenticate(): validate credentials remotely and store them
- create_ticket(): upload attachments and create a ticket
- check_connection(): confirm the stored credentials still work
- name: static provider identifier

It also owns the state every provider shares: the credential slot, the
reader/writer lock that guards it, and the pooled HTTP client.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar

import httpx

from bugtrail.config.settings import DEFAULT_TIMEOUT_SECONDS
from bugtrail.integrations.ticketing.types import (
    ConnectionStatus,
    CreateTicketRequest,
    CreateTicketResponse,
    IssueTemplate,
    TeamInfo,
    TicketingCredentials,
)
from bugtrail.utils.locks import AsyncReadWriteLock

logger = logging.getLogger(__name__)


class TicketingIntegration(ABC):
    """Abstract base class for ticketing integrations.

    Concurrency:
        Instances are shared by concurrent callers. The credential slot is
        the only mutable shared state and is guarded by an
        AsyncReadWriteLock: readers (ticket creation, connection checks)
        take a snapshot under the shared lock, authenticate() swaps the
        whole frozen value under the exclusive lock. No caller can observe
        a mix of two credential values.

    Resource Management:
        A single httpx.AsyncClient is created lazily and reused for every
        call. Use the integration as an async context manager, or call
        close() when done. A client injected through the constructor is
        not closed by close().

    Class Attributes:
        PROVIDER: Registry key for this integration (e.g. "linear")
    """

    PROVIDER: ClassVar[str] = ""

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize shared integration state.

        Args:
            timeout_seconds: Timeout applied to every network call
            http_client: Optional pre-configured client (tests, proxies)
        """
        self._credentials: TicketingCredentials | None = None
        self._credentials_lock = AsyncReadWriteLock()
        self._timeout_seconds = timeout_seconds
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._client_lock = asyncio.Lock()

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable provider name (e.g. "Linear")."""
        pass

    @abstractmethod
    async def authenticate(self, credentials: TicketingCredentials) -> None:
        """Validate credentials against the remote service and store them.

        State is all-or-nothing: on failure the previously stored
        credentials (if any) are left untouched.

        Raises:
            AuthenticationFailedError: If the service rejects the credentials
            TicketingNetworkError: If the service cannot be reached
        """
        pass

    @abstractmethod
    async def create_ticket(self, request: CreateTicketRequest) -> CreateTicketResponse:
        """Create a ticket, uploading its attachments first.

        Attachment failures are reported in the response, never raised.

        Raises:
            InvalidConfigError: If not authenticated or provider settings are missing
            CreationFailedError: If the remote creation call fails
            TicketingNetworkError: If the service cannot be reached
        """
        pass

    @abstractmethod
    async def check_connection(self) -> ConnectionStatus:
        """Confirm the stored credentials still work without changing them.

        Raises:
            ConnectionFailedError: If there are no credentials to check
            TicketingNetworkError: If the service cannot be reached
        """
        pass

    async def fetch_teams(self) -> list[TeamInfo]:
        """List the teams tickets can be filed against.

        Not every tracker has teams; the default is an empty list.
        """
        return []

    async def fetch_templates(self) -> list[IssueTemplate]:
        """List the issue templates defined in the tracker.

        Not every tracker has templates; the default is an empty list.
        """
        return []

    async def get_credentials(self) -> TicketingCredentials | None:
        """Return a snapshot of the stored credentials."""
        async with self._credentials_lock.read():
            return self._credentials

    async def is_authenticated(self) -> bool:
        return await self.get_credentials() is not None

    async def _store_credentials(self, credentials: TicketingCredentials) -> None:
        """Replace the stored credentials as a single exclusive write."""
        async with self._credentials_lock.write():
            self._credentials = credentials
        logger.debug("%s credentials updated: %r", self.name, credentials)

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create the shared HTTP client.

        Uses double-check locking so concurrent first calls create one client.
        """
        if self._http_client is None:
            async with self._client_lock:
                if self._http_client is None:
                    self._http_client = httpx.AsyncClient(
                        timeout=httpx.Timeout(self._timeout_seconds)
                    )
                    self._owns_http_client = True
        return self._http_client

    @property
    def timeout(self) -> httpx.Timeout:
        """Per-request timeout, applied even to an injected client."""
        return httpx.Timeout(self._timeout_seconds)

    async def close(self) -> None:
        """Close the HTTP client if this integration created it.

        Safe to call multiple times.
        """
        if self._http_client is not None and self._owns_http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> TicketingIntegration:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


__all__ = ["TicketingIntegration"]
