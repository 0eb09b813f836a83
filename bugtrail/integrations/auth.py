"""Credential persistence for ticketing integrations.

This module provides TicketingCredentialStore, the adapter between the
ticketing credential value and the application's key-value settings
store. Integrations never persist credentials themselves: the caller (or
the façade's save operation) decides when credentials are written.

Stored keys:
    - TICKETING_API_KEY
    - TICKETING_TEAM_ID
    - TICKETING_WORKSPACE_ID

Absent optional fields are stored as empty strings and read back as None.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from bugtrail.config.settings import (
    TICKETING_API_KEY,
    TICKETING_TEAM_ID,
    TICKETING_WORKSPACE_ID,
)
from bugtrail.integrations.ticketing.exceptions import InvalidConfigError
from bugtrail.integrations.ticketing.types import TicketingCredentials

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    """String key-value store backing credential persistence.

    ConfigManager satisfies this protocol; the desktop application's
    settings database can be plugged in the same way.
    """

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class TicketingCredentialStore:
    """Load and save ticketing credentials through a KeyValueStore.

    Attributes:
        _store: Backing key-value store
    """

    def __init__(self, store: KeyValueStore) -> None:
        """Initialize with a key-value store.

        Args:
            store: Backing store (e.g. a loaded ConfigManager)
        """
        self._store = store

    def load(self) -> TicketingCredentials | None:
        """Read the stored credentials.

        Returns:
            The stored credentials, or None if no API key is stored
        """
        api_key = (self._store.get(TICKETING_API_KEY) or "").strip()
        if not api_key:
            logger.debug("No ticketing API key stored")
            return None

        return TicketingCredentials.from_dict(
            {
                "api_key": api_key,
                "team_id": self._store.get(TICKETING_TEAM_ID),
                "workspace_id": self._store.get(TICKETING_WORKSPACE_ID),
            }
        )

    def save(self, credentials: TicketingCredentials) -> None:
        """Write all three credential keys.

        Raises:
            InvalidConfigError: If a value cannot be stored
        """
        values = {
            TICKETING_API_KEY: credentials.api_key,
            TICKETING_TEAM_ID: credentials.team_id or "",
            TICKETING_WORKSPACE_ID: credentials.workspace_id or "",
        }
        for key, value in values.items():
            try:
                self._store.set(key, value)
            except ValueError as e:
                raise InvalidConfigError(
                    f"Cannot store {key}: {e}", secrets=(credentials.api_key,)
                ) from e
            except OSError as e:
                raise InvalidConfigError(
                    f"Cannot write credentials: {e.strerror or type(e).__name__}"
                ) from e
        logger.info("Saved ticketing credentials: %r", credentials)


__all__ = ["KeyValueStore", "TicketingCredentialStore"]
