"""Ticketing integrations for BUGTRAIL.

This package contains:
- types: Value types exchanged with integrations
- exceptions: Ticketing error taxonomy
- base: TicketingIntegration abstract base class
- registry: Provider registry
- uploader: Three-step attachment upload pipeline
- linear: Linear GraphQL integration (registered as "linear")
- service: TicketingService command layer
"""

from bugtrail.integrations.ticketing.types import (
    AttachmentUploadResult,
    ConnectionStatus,
    CreateTicketRequest,
    CreateTicketResponse,
    IssueTemplate,
    TeamInfo,
    TicketingCredentials,
    UploadSlot,
)
from bugtrail.integrations.ticketing.exceptions import (
    AuthenticationFailedError,
    ConnectionFailedError,
    CreationFailedError,
    InvalidConfigError,
    TicketingError,
    TicketingNetworkError,
)
from bugtrail.integrations.ticketing.base import TicketingIntegration
from bugtrail.integrations.ticketing.registry import IntegrationRegistry
from bugtrail.integrations.ticketing.uploader import AttachmentUploader, UploadSlotRequester

# Importing the provider module registers it
from bugtrail.integrations.ticketing.linear import LinearIntegration
from bugtrail.integrations.ticketing.service import (
    ActiveIntegration,
    CommandResult,
    TicketingService,
    create_ticketing_service,
)

__all__ = [
    # Types
    "AttachmentUploadResult",
    "ConnectionStatus",
    "CreateTicketRequest",
    "CreateTicketResponse",
    "IssueTemplate",
    "TeamInfo",
    "TicketingCredentials",
    "UploadSlot",
    # Exceptions
    "AuthenticationFailedError",
    "ConnectionFailedError",
    "CreationFailedError",
    "InvalidConfigError",
    "TicketingError",
    "TicketingNetworkError",
    # Integrations
    "TicketingIntegration",
    "IntegrationRegistry",
    "LinearIntegration",
    # Uploads
    "AttachmentUploader",
    "UploadSlotRequester",
    # Service
    "ActiveIntegration",
    "CommandResult",
    "TicketingService",
    "create_ticketing_service",
]
