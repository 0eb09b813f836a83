"""External integrations for BUGTRAIL.

This package contains:
- ticketing: Issue tracker integrations and the command layer
- auth: Credential persistence through a key-value store
"""

# ticketing must load first: its command layer imports auth
from bugtrail.integrations.ticketing import (
    ActiveIntegration,
    CommandResult,
    IntegrationRegistry,
    LinearIntegration,
    TicketingIntegration,
    TicketingService,
    create_ticketing_service,
)
from bugtrail.integrations.auth import KeyValueStore, TicketingCredentialStore

__all__ = [
    "ActiveIntegration",
    "CommandResult",
    "IntegrationRegistry",
    "KeyValueStore",
    "LinearIntegration",
    "TicketingCredentialStore",
    "TicketingIntegration",
    "TicketingService",
    "create_ticketing_service",
]
