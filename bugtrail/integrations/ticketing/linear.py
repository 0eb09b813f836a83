"""Linear ticketing integration.

Talks to the Linear GraphQL API. Personal API keys go directly in the
Authorization header; Linear does not use the Bearer prefix for them.

Credential keys:
    - api_key: Linear API key (required)
    - team_id: Team new issues are filed against (required to create)
    - workspace_id: Ignored by Linear
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import httpx

from bugtrail.config.settings import DEFAULT_UPLOAD_CACHE_CONTROL, Settings
from bugtrail.integrations.ticketing.base import TicketingIntegration
from bugtrail.integrations.ticketing.exceptions import (
    AuthenticationFailedError,
    ConnectionFailedError,
    CreationFailedError,
    InvalidConfigError,
    TicketingNetworkError,
)
from bugtrail.integrations.ticketing.graphql import GraphQLRequestError, GraphQLTransport
from bugtrail.integrations.ticketing.registry import IntegrationRegistry
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
from bugtrail.integrations.ticketing.uploader import AttachmentUploader

logger = logging.getLogger(__name__)

VIEWER_QUERY = """
query Viewer {
  viewer {
    id
    name
    email
  }
}
"""

CONNECTION_QUERY = """
query ConnectionCheck {
  viewer {
    id
  }
}
"""

FILE_UPLOAD_MUTATION = """
mutation FileUpload($contentType: String!, $filename: String!, $size: Int!) {
  fileUpload(contentType: $contentType, filename: $filename, size: $size) {
    success
    uploadFile {
      uploadUrl
      assetUrl
      headers {
        key
        value
      }
    }
  }
}
"""

ISSUE_CREATE_MUTATION = """
mutation IssueCreate($input: IssueCreateInput!) {
  issueCreate(input: $input) {
    success
    issue {
      id
      identifier
      url
      title
    }
  }
}
"""

TEAMS_QUERY = """
query Teams {
  teams {
    nodes {
      id
      name
      key
    }
  }
}
"""

TEMPLATES_QUERY = """
query Templates {
  templates {
    id
    name
    type
    description
    team {
      id
    }
  }
}
"""

# Linear priority scale: 0 none, 1 urgent, 2 high, 3 normal, 4 low
PRIORITY_NONE = 0
PRIORITY_MAX = 4

SCREENSHOTS_HEADING = "## Screenshots"


def parse_priority(priority: str | int | None) -> int:
    """Convert a priority code to Linear's 0..4 scale.

    Missing, non-numeric and out-of-range values map to 0 (no priority).
    """
    text = "" if priority is None else str(priority).strip()
    if not text:
        return PRIORITY_NONE
    try:
        value = int(text)
    except ValueError:
        logger.debug("Priority %r is not numeric, sending no priority", priority)
        return PRIORITY_NONE
    if not PRIORITY_NONE <= value <= PRIORITY_MAX:
        logger.debug("Priority %d is out of range, sending no priority", value)
        return PRIORITY_NONE
    return value


def build_description(
    description: str,
    attachment_results: Sequence[AttachmentUploadResult],
) -> str:
    """Embed uploaded attachments into the ticket description.

    Successful uploads are appended as numbered Markdown images under a
    Screenshots heading; failed uploads are listed by filename in a
    closing note.
    """
    result = description
    succeeded = [r for r in attachment_results if r.success]
    failed = [r for r in attachment_results if not r.success]

    if succeeded:
        result += f"\n\n{SCREENSHOTS_HEADING}\n\n"
        for index, attachment in enumerate(succeeded, start=1):
            result += f"![Screenshot {index}]({attachment.message})\n\n"

    if failed:
        names = ", ".join(Path(r.file_path).name for r in failed)
        result += f"\n\n*Note: The following screenshots could not be uploaded: {names}*"

    return result


def _parse_upload_slot(data: dict[str, Any]) -> UploadSlot:
    payload = data.get("fileUpload") or {}
    upload_file = payload.get("uploadFile") if isinstance(payload, dict) else None
    if not isinstance(upload_file, dict):
        raise TicketingNetworkError("fileUpload response is missing uploadFile")

    headers = {
        str(header["key"]): str(header.get("value") or "")
        for header in upload_file.get("headers") or []
        if isinstance(header, dict) and header.get("key")
    }
    return UploadSlot(
        upload_url=str(upload_file.get("uploadUrl") or ""),
        asset_url=str(upload_file.get("assetUrl") or ""),
        headers=headers,
    )


@IntegrationRegistry.register
class LinearIntegration(TicketingIntegration):
    """Reference integration for Linear.

    Attachments are uploaded with Linear's ``fileUpload`` mutation and a
    pre-signed PUT before the issue is created, so the issue description
    can embed their permanent URLs.
    """

    PROVIDER = "linear"

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        api_url: str | None = None,
        timeout_seconds: float | None = None,
        max_concurrent_uploads: int | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the Linear integration.

        Explicit arguments take precedence over ``settings``.

        Args:
            settings: Loaded configuration settings
            api_url: GraphQL endpoint override
            timeout_seconds: Per-request timeout override
            max_concurrent_uploads: Upload concurrency override
            http_client: Optional pre-configured client (tests, proxies)
        """
        settings = settings or Settings()
        super().__init__(
            timeout_seconds=timeout_seconds or settings.effective_timeout_seconds,
            http_client=http_client,
        )
        self._api_url = api_url or settings.linear_api_url
        self._transport = GraphQLTransport(
            self._api_url,
            self._get_http_client,
            platform_name=self.name,
            timeout=self.timeout,
        )
        self._uploader = AttachmentUploader(
            self,
            self._get_http_client,
            timeout=self.timeout,
            cache_control=settings.upload_cache_control or DEFAULT_UPLOAD_CACHE_CONTROL,
            max_concurrent=max_concurrent_uploads or settings.effective_max_concurrent_uploads,
        )

    @property
    def name(self) -> str:
        return "Linear"

    @property
    def api_url(self) -> str:
        return self._api_url

    async def authenticate(self, credentials: TicketingCredentials) -> None:
        if not credentials.api_key:
            raise AuthenticationFailedError("API key is empty")

        try:
            data = await self._transport.execute(
                VIEWER_QUERY,
                None,
                auth_header=credentials.api_key,
                operation="authenticate",
            )
        except GraphQLRequestError as e:
            raise AuthenticationFailedError(e.detail, secrets=(credentials.api_key,)) from e

        viewer = data.get("viewer")
        if not isinstance(viewer, dict) or not viewer.get("id"):
            raise AuthenticationFailedError("Linear did not return the authenticated user")

        await self._store_credentials(credentials)
        logger.info("Authenticated with Linear as user %s", viewer.get("id"))

    async def check_connection(self) -> ConnectionStatus:
        credentials = await self.get_credentials()
        if credentials is None:
            raise ConnectionFailedError("Not authenticated")

        try:
            data = await self._transport.execute(
                CONNECTION_QUERY,
                None,
                auth_header=credentials.api_key,
                operation="check connection",
            )
        except GraphQLRequestError as e:
            return ConnectionStatus(
                connected=False,
                integration_name=self.name,
                message=e.detail,
            )

        if not isinstance(data.get("viewer"), dict):
            return ConnectionStatus(
                connected=False,
                integration_name=self.name,
                message="Linear did not return the authenticated user",
            )
        return ConnectionStatus(connected=True, integration_name=self.name)

    async def create_ticket(self, request: CreateTicketRequest) -> CreateTicketResponse:
        # Snapshot once; a concurrent authenticate() affects later calls only
        credentials = await self.get_credentials()
        if credentials is None:
            raise InvalidConfigError("Not authenticated with Linear")
        if not credentials.team_id:
            raise InvalidConfigError("Linear team ID is not configured")

        attachment_results = await self._uploader.upload_all(request.attachments, credentials)

        issue_input: dict[str, Any] = {
            "teamId": credentials.team_id,
            "title": request.title,
            "description": build_description(request.description, attachment_results),
            "priority": parse_priority(request.priority),
        }
        if request.labels:
            issue_input["labelIds"] = sorted(request.labels)
        if request.assignee_id:
            issue_input["assigneeId"] = request.assignee_id
        if request.state_id:
            issue_input["stateId"] = request.state_id

        try:
            data = await self._transport.execute(
                ISSUE_CREATE_MUTATION,
                {"input": issue_input},
                auth_header=credentials.api_key,
                operation="create issue",
            )
        except GraphQLRequestError as e:
            self._log_orphaned_assets(attachment_results)
            raise CreationFailedError(e.detail, secrets=(credentials.api_key,)) from e
        except TicketingNetworkError:
            self._log_orphaned_assets(attachment_results)
            raise

        try:
            issue = self._parse_created_issue(data)
        except CreationFailedError:
            self._log_orphaned_assets(attachment_results)
            raise

        logger.info(
            "Created Linear issue %s with %d/%d attachments",
            issue["identifier"],
            sum(1 for r in attachment_results if r.success),
            len(attachment_results),
        )
        return CreateTicketResponse(
            id=issue["id"],
            url=issue["url"],
            identifier=issue["identifier"],
            attachment_results=attachment_results,
        )

    async def fetch_teams(self) -> list[TeamInfo]:
        data = await self._execute_read(TEAMS_QUERY, "fetch teams")
        nodes = (data.get("teams") or {}).get("nodes") or []
        return [
            TeamInfo(
                id=str(node["id"]),
                name=str(node.get("name") or ""),
                key=str(node.get("key") or ""),
            )
            for node in nodes
            if isinstance(node, dict) and node.get("id")
        ]

    async def fetch_templates(self) -> list[IssueTemplate]:
        data = await self._execute_read(TEMPLATES_QUERY, "fetch templates")
        templates: list[IssueTemplate] = []
        for node in data.get("templates") or []:
            if not isinstance(node, dict) or not node.get("id"):
                continue
            # Linear also stores project and document templates here
            if node.get("type") != "issue":
                continue
            team = node.get("team") or {}
            templates.append(
                IssueTemplate(
                    id=str(node["id"]),
                    name=str(node.get("name") or ""),
                    team_id=team.get("id") if isinstance(team, dict) else None,
                    description=node.get("description"),
                )
            )
        return templates

    async def request_upload_slot(
        self,
        *,
        credentials: TicketingCredentials,
        content_type: str,
        filename: str,
        size: int,
    ) -> UploadSlot:
        """Step 1 of the upload protocol: Linear's fileUpload mutation."""
        try:
            data = await self._transport.execute(
                FILE_UPLOAD_MUTATION,
                {"contentType": content_type, "filename": filename, "size": size},
                auth_header=credentials.api_key,
                operation="request upload slot",
            )
        except GraphQLRequestError as e:
            raise TicketingNetworkError(e.detail, secrets=(credentials.api_key,)) from e

        return _parse_upload_slot(data)

    async def _execute_read(self, query: str, operation: str) -> dict[str, Any]:
        credentials = await self.get_credentials()
        if credentials is None:
            raise InvalidConfigError("Not authenticated with Linear")

        try:
            return await self._transport.execute(
                query,
                None,
                auth_header=credentials.api_key,
                operation=operation,
            )
        except GraphQLRequestError as e:
            if e.status_code in (401, 403):
                raise AuthenticationFailedError(e.detail, secrets=(credentials.api_key,)) from e
            raise TicketingNetworkError(e.detail, secrets=(credentials.api_key,)) from e

    @staticmethod
    def _parse_created_issue(data: dict[str, Any]) -> dict[str, str]:
        payload = data.get("issueCreate")
        if not isinstance(payload, dict):
            raise CreationFailedError("issueCreate response is missing")
        if not payload.get("success"):
            raise CreationFailedError("Linear reported success: false")

        issue = payload.get("issue")
        if not isinstance(issue, dict):
            raise CreationFailedError("issueCreate response is missing the issue")

        missing = [field for field in ("id", "identifier", "url") if not issue.get(field)]
        if missing:
            raise CreationFailedError(f"Created issue is missing {', '.join(missing)}")
        return {field: str(issue[field]) for field in ("id", "identifier", "url")}

    @staticmethod
    def _log_orphaned_assets(attachment_results: Sequence[AttachmentUploadResult]) -> None:
        orphaned = [r.message for r in attachment_results if r.success]
        if orphaned:
            logger.warning(
                "Issue creation failed after %d attachment(s) were uploaded: %s",
                len(orphaned),
                ", ".join(orphaned),
            )


__all__ = [
    "LinearIntegration",
    "build_description",
    "parse_priority",
]
