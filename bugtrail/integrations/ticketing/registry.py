"""Registry of ticketing integrations.

Integrations register themselves with a decorator; the façade asks the
registry to build the configured one. Adding a tracker means adding a
module with a registered class, without touching any call site.

Example usage:
    @IntegrationRegistry.register
    class LinearIntegration(TicketingIntegration):
        PROVIDER = "linear"
        ...

    integration = IntegrationRegistry.create("linear", settings=settings)
"""

from __future__ import annotations

import inspect
import logging
import threading
from typing import Any, ClassVar

from bugtrail.integrations.ticketing.base import TicketingIntegration
from bugtrail.integrations.ticketing.exceptions import InvalidConfigError

logger = logging.getLogger(__name__)


class IntegrationRegistry:
    """Factory for ticketing integrations.

    All methods are class methods. Registrations are protected by a
    threading.Lock. The registry does not cache instances: the façade owns
    the single active integration.
    """

    _integrations: ClassVar[dict[str, type[TicketingIntegration]]] = {}
    _lock: ClassVar[threading.Lock] = threading.Lock()

    @classmethod
    def register(cls, integration_class: type[TicketingIntegration]) -> type[TicketingIntegration]:
        """Decorator to register an integration class under its PROVIDER key.

        Raises:
            TypeError: If the class is not a TicketingIntegration subclass
                or has no PROVIDER key
        """
        if not isinstance(integration_class, type) or not issubclass(
            integration_class, TicketingIntegration
        ):
            raise TypeError(
                f"Integration class must be a subclass of TicketingIntegration, "
                f"got {type(integration_class).__name__}"
            )

        provider = getattr(integration_class, "PROVIDER", "")
        if not isinstance(provider, str) or not provider:
            raise TypeError(
                f"Integration class {integration_class.__name__} must define a PROVIDER key"
            )

        key = provider.lower()
        with cls._lock:
            existing = cls._integrations.get(key)
            if existing is not None and existing is not integration_class:
                logger.warning(
                    "Replacing integration %s with %s for provider %s",
                    existing.__name__,
                    integration_class.__name__,
                    key,
                )
            cls._integrations[key] = integration_class

        return integration_class

    @classmethod
    def get(cls, provider: str) -> type[TicketingIntegration]:
        """Look up the integration class for a provider key.

        Raises:
            InvalidConfigError: If no integration is registered under the key
        """
        key = provider.strip().lower()
        with cls._lock:
            integration_class = cls._integrations.get(key)
            available = sorted(cls._integrations)
        if integration_class is None:
            raise InvalidConfigError(
                f"Unknown ticketing provider '{provider}'. "
                f"Available: {', '.join(available) or '(none)'}"
            )
        return integration_class

    @classmethod
    def create(cls, provider: str, **options: Any) -> TicketingIntegration:
        """Build an integration, passing only the options its __init__ accepts.

        Args:
            provider: Registry key (e.g. "linear")
            **options: Candidate constructor arguments (settings, http_client, ...)

        Returns:
            A new, unauthenticated integration instance
        """
        integration_class = cls.get(provider)
        params = inspect.signature(integration_class.__init__).parameters
        accepts_var_kwargs = any(p.kind is inspect.Parameter.VAR_KEYWORD for p in params.values())
        kwargs = {
            name: value
            for name, value in options.items()
            if value is not None and (accepts_var_kwargs or name in params)
        }
        return integration_class(**kwargs)

    @classmethod
    def list_providers(cls) -> list[str]:
        """Registered provider keys, sorted."""
        with cls._lock:
            return sorted(cls._integrations)

    @classmethod
    def unregister(cls, provider: str) -> None:
        """Remove a registration (used for test isolation)."""
        with cls._lock:
            cls._integrations.pop(provider.lower(), None)


__all__ = ["IntegrationRegistry"]
