"""Value types shared by every ticketing integration.

All types are frozen dataclasses. ``to_dict()`` and ``from_dict()`` convert
them to and from the plain JSON-friendly dictionaries used at the calling
application's boundary.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any


def _optional_str(value: Any) -> str | None:
    """Normalize empty/whitespace strings to None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _string_items(value: Any) -> tuple[str, ...]:
    """Normalize a path or label collection; a bare string is one item."""
    if value is None or value == "":
        return ()
    if isinstance(value, str):
        value = (value,)
    return tuple(str(item) for item in value)


@dataclass(frozen=True)
class TicketingCredentials:
    """Credentials for a ticketing integration.

    The meaning of the optional fields is provider-specific: Linear needs
    ``team_id`` to create issues and ignores ``workspace_id``.

    ``repr()`` masks the API key so credentials can appear in debug output
    without leaking.
    """

    api_key: str
    team_id: str | None = None
    workspace_id: str | None = None

    def __repr__(self) -> str:
        masked = "****" if self.api_key else "''"
        return (
            f"TicketingCredentials(api_key={masked}, team_id={self.team_id!r}, "
            f"workspace_id={self.workspace_id!r})"
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TicketingCredentials:
        return cls(
            api_key=str(data.get("api_key") or "").strip(),
            team_id=_optional_str(data.get("team_id")),
            workspace_id=_optional_str(data.get("workspace_id")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "api_key": self.api_key,
            "team_id": self.team_id,
            "workspace_id": self.workspace_id,
        }


@dataclass(frozen=True)
class CreateTicketRequest:
    """Request to create a ticket.

    Attributes:
        title: Ticket title
        description: Markdown body written by the tester
        attachments: Local file paths to upload, in display order
        priority: Provider-specific priority code (Linear: "0".."4")
        labels: Label identifiers to apply
        assignee_id: Optional assignee (from profile defaults)
        state_id: Optional workflow state (from profile defaults)
    """

    title: str
    description: str = ""
    attachments: tuple[str, ...] = ()
    priority: str | None = None
    labels: frozenset[str] = frozenset()
    assignee_id: str | None = None
    state_id: str | None = None

    def __post_init__(self) -> None:
        # Accept any iterable from callers while keeping the value immutable
        object.__setattr__(self, "attachments", _string_items(self.attachments))
        object.__setattr__(self, "labels", frozenset(_string_items(self.labels)))
        if self.priority is not None:
            object.__setattr__(self, "priority", str(self.priority))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CreateTicketRequest:
        priority = data.get("priority")
        return cls(
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            attachments=_string_items(data.get("attachments")),
            priority=None if priority is None else str(priority),
            labels=frozenset(_string_items(data.get("labels"))),
            assignee_id=_optional_str(data.get("assignee_id")),
            state_id=_optional_str(data.get("state_id")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "attachments": list(self.attachments),
            "priority": self.priority,
            "labels": sorted(self.labels),
            "assignee_id": self.assignee_id,
            "state_id": self.state_id,
        }


@dataclass(frozen=True)
class AttachmentUploadResult:
    """Outcome of uploading a single attachment.

    ``message`` holds the permanent asset URL on success and the reason,
    prefixed with the failed stage, on failure.
    """

    file_path: str
    success: bool
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"file_path": self.file_path, "success": self.success, "message": self.message}


@dataclass(frozen=True)
class CreateTicketResponse:
    """Response from creating a ticket.

    ``attachment_results`` has one entry per requested attachment, in
    request order, even when every upload failed.
    """

    id: str
    url: str
    identifier: str
    attachment_results: tuple[AttachmentUploadResult, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "attachment_results", tuple(self.attachment_results))

    @property
    def failed_attachments(self) -> list[AttachmentUploadResult]:
        return [r for r in self.attachment_results if not r.success]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "identifier": self.identifier,
            "attachment_results": [r.to_dict() for r in self.attachment_results],
        }


@dataclass(frozen=True)
class ConnectionStatus:
    """Connection status for a ticketing integration."""

    connected: bool
    integration_name: str
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "connected": self.connected,
            "message": self.message,
            "integration_name": self.integration_name,
        }


@dataclass(frozen=True)
class TeamInfo:
    """A team that tickets can be filed against."""

    id: str
    name: str
    key: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "key": self.key}


@dataclass(frozen=True)
class IssueTemplate:
    """An issue template defined in the tracker."""

    id: str
    name: str
    team_id: str | None = None
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "team_id": self.team_id,
            "description": self.description,
        }


@dataclass(frozen=True)
class UploadSlot:
    """Short-lived upload target returned by step 1 of the upload protocol.

    Attributes:
        upload_url: Pre-signed URL accepting a single PUT
        asset_url: Permanent URL of the asset once the PUT succeeds
        headers: Extra headers the PUT must carry (signature, ACL, ...)
    """

    upload_url: str
    asset_url: str
    headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))


__all__ = [
    "AttachmentUploadResult",
    "ConnectionStatus",
    "CreateTicketRequest",
    "CreateTicketResponse",
    "IssueTemplate",
    "TeamInfo",
    "TicketingCredentials",
    "UploadSlot",
]
