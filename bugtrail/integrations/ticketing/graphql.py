"""GraphQL transport shared by GraphQL-based integrations.

Centralizes the request/validation steps every GraphQL call goes through:
- POST the query with the caller's auth header and a bounded timeout
- Map transport failures and timeouts to TicketingNetworkError
- Surface non-2xx statuses and GraphQL ``errors`` payloads as
  GraphQLRequestError so each operation can map them to its own
  error variant (authentication, creation, ...)
- Reject responses with null ``data``
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from bugtrail.integrations.ticketing.exceptions import TicketingNetworkError
from bugtrail.utils.errors import sanitize_message
from bugtrail.utils.logging import log_request_metadata

logger = logging.getLogger(__name__)

ClientFactory = Callable[[], Awaitable[httpx.AsyncClient]]


class GraphQLRequestError(Exception):
    """The service answered, but refused the operation.

    Raised for non-2xx HTTP statuses and for GraphQL ``errors`` payloads.
    The message is already sanitized.

    Attributes:
        status_code: HTTP status code (200 for GraphQL-level errors)
        detail: Sanitized description of the failure
    """

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(detail)


def format_graphql_errors(errors: Any) -> str:
    """Join the ``message`` fields of a GraphQL errors array."""
    if isinstance(errors, list):
        messages = [
            str(error.get("message", "")).strip()
            for error in errors
            if isinstance(error, dict) and error.get("message")
        ]
        if messages:
            return "; ".join(messages)
    return json.dumps(errors, default=str)


class GraphQLTransport:
    """Executes GraphQL operations against a single endpoint.

    Attributes:
        endpoint: GraphQL endpoint URL
        platform_name: Name used in log and error messages
    """

    def __init__(
        self,
        endpoint: str,
        client_factory: ClientFactory,
        *,
        platform_name: str,
        timeout: httpx.Timeout,
    ) -> None:
        """Initialize the transport.

        Args:
            endpoint: GraphQL endpoint URL
            client_factory: Coroutine returning the shared httpx.AsyncClient
            platform_name: Name used in log and error messages
            timeout: Per-request timeout
        """
        self.endpoint = endpoint
        self.platform_name = platform_name
        self._client_factory = client_factory
        self._timeout = timeout

    async def execute(
        self,
        query: str,
        variables: dict[str, Any] | None,
        *,
        auth_header: str,
        operation: str,
    ) -> dict[str, Any]:
        """Run a GraphQL operation and return its ``data`` object.

        Args:
            query: GraphQL document
            variables: Operation variables
            auth_header: Value of the Authorization header
            operation: Operation name for logs and error messages

        Returns:
            The non-null ``data`` object of the response

        Raises:
            TicketingNetworkError: Transport failure, timeout, unparseable body
            GraphQLRequestError: Non-2xx status or GraphQL errors payload
        """
        secrets = (auth_header,)
        headers = {
            "Authorization": auth_header,
            "Content-Type": "application/json",
        }
        payload = {"query": query, "variables": variables or {}}

        log_request_metadata(
            f"{self.platform_name} {operation}",
            endpoint=self.endpoint,
            timeout=self._timeout.read,
        )
        client = await self._client_factory()
        try:
            response = await client.post(
                self.endpoint,
                json=payload,
                headers=headers,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as e:
            raise TicketingNetworkError(
                f"{operation} timed out after {self._timeout.read}s", secrets=secrets
            ) from e
        except httpx.HTTPError as e:
            raise TicketingNetworkError(
                f"{operation} request failed: {type(e).__name__}: {e}", secrets=secrets
            ) from e

        if not response.is_success:
            raise GraphQLRequestError(
                response.status_code,
                sanitize_message(f"HTTP {response.status_code}: {response.text}", secrets),
            )

        try:
            body = response.json()
        except ValueError as e:
            raise TicketingNetworkError(
                f"Failed to parse {operation} response: {e}", secrets=secrets
            ) from e

        if not isinstance(body, dict):
            raise TicketingNetworkError(f"Unexpected {operation} response shape")

        if body.get("errors"):
            raise GraphQLRequestError(
                response.status_code,
                sanitize_message(
                    f"GraphQL errors: {format_graphql_errors(body['errors'])}", secrets
                ),
            )

        data = body.get("data")
        if not isinstance(data, dict):
            raise TicketingNetworkError(f"{operation} response contains null data")
        return data


__all__ = [
    "ClientFactory",
    "GraphQLRequestError",
    "GraphQLTransport",
    "format_graphql_errors",
]
