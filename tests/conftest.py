"""Shared pytest fixtures for BUGTRAIL tests."""

import json
from pathlib import Path
from typing import Any

import httpx
import pytest

from bugtrail.integrations.ticketing import LinearIntegration, TicketingCredentials

# Enable pytest-asyncio for async test support
pytest_plugins = ("pytest_asyncio",)

LINEAR_TEST_URL = "https://linear.test/graphql"
VALID_API_KEY = "lin_api_x"


class FakeLinear:
    """Scriptable stand-in for the Linear GraphQL API and its upload storage.

    Routes GraphQL POSTs by the operation found in the query text and
    accepts PUTs to the pre-signed upload URLs it hands out. Every request
    is recorded for assertions.
    """

    def __init__(self) -> None:
        self.valid_api_key = VALID_API_KEY
        self.requests: list[httpx.Request] = []
        self.graphql_payloads: list[dict[str, Any]] = []
        self.uploads: list[httpx.Request] = []
        self.failing_uploads: set[str] = set()
        self.failing_slots: set[str] = set()
        self.issue_create_response: dict[str, Any] | None = None
        self.raise_on: str | None = None
        self.teams = [
            {"id": "team-1", "name": "Engineering", "key": "ENG"},
            {"id": "team-2", "name": "Quality", "key": "QA"},
        ]
        self.templates = [
            {
                "id": "tpl-1",
                "name": "Bug report",
                "type": "issue",
                "description": "Steps to reproduce",
                "team": {"id": "team-1"},
            },
            {"id": "tpl-2", "name": "Roadmap", "type": "project", "team": None},
        ]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def payloads_for(self, operation: str) -> list[dict[str, Any]]:
        return [p for p in self.graphql_payloads if operation in p["query"]]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "PUT":
            return self._handle_upload(request)

        payload = json.loads(request.content)
        self.graphql_payloads.append(payload)
        query = payload["query"]

        if self.raise_on and self.raise_on in query:
            raise httpx.ConnectError("connection refused", request=request)

        if request.headers.get("Authorization") != self.valid_api_key:
            return httpx.Response(
                400,
                json={"errors": [{"message": "Authentication required, not authenticated"}]},
            )

        if "issueCreate" in query:
            return self._handle_issue_create(payload["variables"]["input"])
        if "fileUpload" in query:
            return self._handle_file_upload(payload["variables"])
        if "teams" in query:
            return httpx.Response(200, json={"data": {"teams": {"nodes": self.teams}}})
        if "templates" in query:
            return httpx.Response(200, json={"data": {"templates": self.templates}})
        if "viewer" in query:
            return httpx.Response(
                200,
                json={"data": {"viewer": {"id": "user-1", "name": "QA", "email": "qa@example.com"}}},
            )
        return httpx.Response(400, json={"errors": [{"message": "Unknown operation"}]})

    def _handle_file_upload(self, variables: dict[str, Any]) -> httpx.Response:
        filename = variables["filename"]
        if filename in self.failing_slots:
            return httpx.Response(
                200, json={"errors": [{"message": f"Upload of {filename} not allowed"}]}
            )
        return httpx.Response(
            200,
            json={
                "data": {
                    "fileUpload": {
                        "success": True,
                        "uploadFile": {
                            "uploadUrl": f"https://uploads.linear.test/put/{filename}?signature=s3cr3t",
                            "assetUrl": f"https://assets.linear.test/{filename}",
                            "headers": [{"key": "x-amz-acl", "value": "public-read"}],
                        },
                    }
                }
            },
        )

    def _handle_upload(self, request: httpx.Request) -> httpx.Response:
        self.uploads.append(request)
        filename = request.url.path.rsplit("/", 1)[-1]
        if filename in self.failing_uploads:
            return httpx.Response(503, text="storage unavailable")
        return httpx.Response(200)

    def _handle_issue_create(self, issue_input: dict[str, Any]) -> httpx.Response:
        if self.issue_create_response is not None:
            return httpx.Response(200, json=self.issue_create_response)
        return httpx.Response(
            200,
            json={
                "data": {
                    "issueCreate": {
                        "success": True,
                        "issue": {
                            "id": "issue-1",
                            "identifier": "ENG-1",
                            "url": "https://linear.app/acme/issue/ENG-1",
                            "title": issue_input["title"],
                        },
                    }
                }
            },
        )


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_linear() -> FakeLinear:
    """Fresh fake Linear backend."""
    return FakeLinear()


@pytest.fixture
def linear(fake_linear: FakeLinear) -> LinearIntegration:
    """LinearIntegration wired to the fake backend."""
    return LinearIntegration(api_url=LINEAR_TEST_URL, http_client=fake_linear.client())


@pytest.fixture
def credentials() -> TicketingCredentials:
    """Credentials accepted by the fake backend."""
    return TicketingCredentials(api_key=VALID_API_KEY, team_id="team-1")


@pytest.fixture
def screenshots(tmp_path: Path) -> tuple[str, str]:
    """Two small screenshot files on disk."""
    a = tmp_path / "a.png"
    b = tmp_path / "b.png"
    a.write_bytes(b"\x89PNG\r\n\x1a\nfirst")
    b.write_bytes(b"\x89PNG\r\n\x1a\nsecond")
    return str(a), str(b)


@pytest.fixture
def temp_config_file(tmp_path: Path) -> Path:
    """Create a temporary config file with sample values."""
    config_file = tmp_path / ".bugtrail-config"
    config_file.write_text(
        """# BUGTRAIL Configuration
TICKETING_PROVIDER="linear"
LINEAR_API_URL="https://linear.example/graphql"
TICKETING_TIMEOUT_SECONDS="12.5"
MAX_CONCURRENT_UPLOADS="2"
TICKETING_API_KEY="lin_api_stored"
TICKETING_TEAM_ID="team-9"
"""
    )
    return config_file
