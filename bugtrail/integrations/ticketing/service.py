"""TicketingService command layer.

This module exposes the active integration's operations to the calling
application as plain request/response calls:
- Inputs are value types or plain dicts (as received from a UI boundary)
- Every call returns a CommandResult whose ``to_dict()`` is JSON-friendly
- TicketingError variants become ``{"kind": ..., "message": ...}``
- Calls made before an integration is active fail fast with InvalidConfig

Example usage:
    async with create_ticketing_service() as service:
        await service.authenticate({"api_key": "...", "team_id": "..."})
        result = await service.create_ticket({"title": "Crash on launch"})
        print(result.to_dict())
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from bugtrail.integrations.auth import TicketingCredentialStore
from bugtrail.integrations.ticketing.base import TicketingIntegration
from bugtrail.integrations.ticketing.exceptions import (
    ConnectionFailedError,
    InvalidConfigError,
    TicketingError,
    TicketingNetworkError,
)
from bugtrail.integrations.ticketing.registry import IntegrationRegistry
from bugtrail.integrations.ticketing.types import (
    ConnectionStatus,
    CreateTicketRequest,
    TicketingCredentials,
)

if TYPE_CHECKING:
    import httpx

    from bugtrail.config import ConfigManager

logger = logging.getLogger(__name__)

PayloadT = TypeVar("PayloadT", TicketingCredentials, CreateTicketRequest)


def _from_payload(payload: Any, value_type: type[PayloadT]) -> PayloadT:
    """Accept a value type or the plain mapping received at the boundary.

    Raises:
        InvalidConfigError: If the payload is neither, or its fields are unusable
    """
    if isinstance(payload, value_type):
        return payload
    if not isinstance(payload, Mapping):
        raise InvalidConfigError(
            f"Expected {value_type.__name__} or a mapping, got {type(payload).__name__}"
        )
    try:
        return value_type.from_dict(payload)
    except (TypeError, ValueError) as e:
        raise InvalidConfigError(f"Invalid {value_type.__name__}: {e}") from e


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a façade operation.

    Attributes:
        ok: True if the operation succeeded
        data: JSON-friendly payload (may be present on failure, e.g. a
            disconnected ConnectionStatus)
        error: ``{"kind", "message"}`` of the failure, if any
    """

    ok: bool
    data: Any = None
    error: dict[str, str] | None = None

    @classmethod
    def success(cls, data: Any = None) -> CommandResult:
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: TicketingError, data: Any = None) -> CommandResult:
        return cls(ok=False, data=data, error=error.to_dict())

    def to_dict(self) -> dict[str, Any]:
        return {"ok": self.ok, "data": self.data, "error": self.error}


class ActiveIntegration:
    """Handle to the single active integration.

    The handle is owned by the façade and passed explicitly; there is no
    module-level active integration. Replacing the integration closes the
    previous one. Callers holding a reference obtained before a swap keep
    using it until their call completes.
    """

    def __init__(self, integration: TicketingIntegration | None = None) -> None:
        self._integration = integration
        self._lock = asyncio.Lock()

    @property
    def integration(self) -> TicketingIntegration | None:
        return self._integration

    def require(self) -> TicketingIntegration:
        """Return the active integration.

        Raises:
            InvalidConfigError: If no integration is active
        """
        integration = self._integration
        if integration is None:
            raise InvalidConfigError("No ticketing integration is initialized")
        return integration

    async def replace(self, integration: TicketingIntegration | None) -> None:
        """Install a new integration (or None), closing the previous one."""
        async with self._lock:
            previous, self._integration = self._integration, integration
        if previous is not None and previous is not integration:
            await previous.close()
            logger.debug("Closed previous %s integration", previous.name)

    async def close(self) -> None:
        await self.replace(None)


class TicketingService:
    """Exposes ticketing operations to the calling application.

    Resource Management:
        The service owns the active integration's HTTP client. Use the
        async context manager pattern or call close() when done.

    Attributes:
        _active: Handle to the active integration
        _credential_store: Optional store used by get/save_credentials
    """

    def __init__(
        self,
        active: ActiveIntegration,
        credential_store: TicketingCredentialStore | None = None,
    ) -> None:
        self._active = active
        self._credential_store = credential_store

    @property
    def active(self) -> ActiveIntegration:
        return self._active

    async def name(self) -> CommandResult:
        """Name of the active integration."""
        try:
            integration = self._active.require()
        except InvalidConfigError as e:
            return CommandResult.failure(e)
        return CommandResult.success(integration.name)

    async def authenticate(
        self, credentials: TicketingCredentials | Mapping[str, Any]
    ) -> CommandResult:
        """Validate and store credentials on the active integration."""

        async def _authenticate(integration: TicketingIntegration) -> None:
            await integration.authenticate(_from_payload(credentials, TicketingCredentials))

        return await self._run("authenticate", _authenticate)

    async def create_ticket(
        self, request: CreateTicketRequest | Mapping[str, Any]
    ) -> CommandResult:
        """Create a ticket; data is the CreateTicketResponse as a dict."""

        async def _create(integration: TicketingIntegration) -> dict[str, Any]:
            ticket_request = _from_payload(request, CreateTicketRequest)
            response = await integration.create_ticket(ticket_request)
            return response.to_dict()

        return await self._run("create ticket", _create)

    async def check_connection(self) -> CommandResult:
        """Check the stored credentials.

        A ConnectionFailed error is reported together with a disconnected
        status payload so callers can render either.
        """
        try:
            integration = self._active.require()
        except InvalidConfigError as e:
            return CommandResult.failure(e)

        try:
            status = await integration.check_connection()
        except ConnectionFailedError as e:
            logger.info("%s connection check failed: %s", integration.name, e.detail)
            disconnected = ConnectionStatus(
                connected=False,
                integration_name=integration.name,
                message=e.detail,
            )
            return CommandResult.failure(e, data=disconnected.to_dict())
        except TicketingError as e:
            logger.warning("check connection failed: %s", e)
            return CommandResult.failure(e)
        except Exception as e:
            return self._unexpected("check connection", e)
        return CommandResult.success(status.to_dict())

    async def fetch_teams(self) -> CommandResult:
        async def _fetch(integration: TicketingIntegration) -> list[dict[str, Any]]:
            return [team.to_dict() for team in await integration.fetch_teams()]

        return await self._run("fetch teams", _fetch)

    async def fetch_templates(self) -> CommandResult:
        async def _fetch(integration: TicketingIntegration) -> list[dict[str, Any]]:
            return [template.to_dict() for template in await integration.fetch_templates()]

        return await self._run("fetch templates", _fetch)

    def get_credentials(self) -> CommandResult:
        """Read persisted credentials; data is None when none are stored."""
        try:
            store = self._require_store()
            credentials = store.load()
        except TicketingError as e:
            return CommandResult.failure(e)
        return CommandResult.success(credentials.to_dict() if credentials else None)

    def save_credentials(
        self, credentials: TicketingCredentials | Mapping[str, Any]
    ) -> CommandResult:
        """Persist credentials without validating them remotely."""
        try:
            store = self._require_store()
            store.save(_from_payload(credentials, TicketingCredentials))
        except TicketingError as e:
            return CommandResult.failure(e)
        return CommandResult.success()

    async def close(self) -> None:
        await self._active.close()

    async def __aenter__(self) -> TicketingService:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _require_store(self) -> TicketingCredentialStore:
        if self._credential_store is None:
            raise InvalidConfigError("No credential store is configured")
        return self._credential_store

    async def _run(
        self,
        operation: str,
        call: Callable[[TicketingIntegration], Awaitable[Any]],
    ) -> CommandResult:
        try:
            integration = self._active.require()
            data = await call(integration)
        except TicketingError as e:
            logger.warning("%s failed: %s", operation, e)
            return CommandResult.failure(e)
        except Exception as e:
            return self._unexpected(operation, e)
        return CommandResult.success(data)

    @staticmethod
    def _unexpected(operation: str, error: Exception) -> CommandResult:
        # Raw text of unknown exceptions may contain credentials; log the type only
        logger.error("%s failed with unexpected %s", operation, type(error).__name__)
        return CommandResult.failure(
            TicketingNetworkError(f"{operation} failed unexpectedly ({type(error).__name__})")
        )


def create_ticketing_service(
    config_manager: ConfigManager | None = None,
    provider: str | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> TicketingService:
    """Create a TicketingService with the configured integration.

    Args:
        config_manager: Loaded ConfigManager. A new one is created and
            loaded when omitted; it also backs the credential store.
        provider: Registry key of the integration. Defaults to the
            TICKETING_PROVIDER setting.
        http_client: Optional pre-configured client for the integration

    Returns:
        TicketingService with an active, unauthenticated integration

    Raises:
        InvalidConfigError: If the provider is not registered
    """
    if config_manager is None:
        from bugtrail.config import ConfigManager

        config_manager = ConfigManager()
        config_manager.load()

    settings = config_manager.settings
    provider_key = provider or settings.ticketing_provider
    integration = IntegrationRegistry.create(
        provider_key,
        settings=settings,
        http_client=http_client,
    )
    logger.debug("Created %s ticketing integration", integration.name)
    return TicketingService(
        ActiveIntegration(integration),
        credential_store=TicketingCredentialStore(config_manager),
    )


__all__ = [
    "ActiveIntegration",
    "CommandResult",
    "TicketingService",
    "create_ticketing_service",
]
