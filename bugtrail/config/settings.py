"""Settings dataclass for BUGTRAIL configuration.

This module defines the Settings dataclass that holds the ticketing
client's tunables. Credentials are not settings: they are read and written
through the credential store adapter (see bugtrail.integrations.auth).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_LINEAR_API_URL = "https://api.linear.app/graphql"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_CONCURRENT_UPLOADS = 3
DEFAULT_UPLOAD_CACHE_CONTROL = "public, max-age=31536000"

# Upper bounds keep misconfiguration from hanging the caller
MAX_TIMEOUT_SECONDS = 300.0
MAX_CONCURRENT_UPLOADS_LIMIT = 10


@dataclass
class Settings:
    """Configuration settings for BUGTRAIL.

    All settings have sensible defaults and can be loaded from
    the configuration file (~/.bugtrail-config).

    Attributes:
        ticketing_provider: Key of the active integration in the registry
        linear_api_url: Linear GraphQL endpoint
        ticketing_timeout_seconds: Timeout applied to every network call
        max_concurrent_uploads: Attachments uploaded in parallel per ticket
        upload_cache_control: Cache-Control header sent with uploaded bytes
    """

    ticketing_provider: str = "linear"
    linear_api_url: str = DEFAULT_LINEAR_API_URL
    ticketing_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    max_concurrent_uploads: int = DEFAULT_MAX_CONCURRENT_UPLOADS
    upload_cache_control: str = DEFAULT_UPLOAD_CACHE_CONTROL

    # Config key to attribute mapping
    _key_mapping: dict[str, str] = field(
        default_factory=lambda: {
            "TICKETING_PROVIDER": "ticketing_provider",
            "LINEAR_API_URL": "linear_api_url",
            "TICKETING_TIMEOUT_SECONDS": "ticketing_timeout_seconds",
            "MAX_CONCURRENT_UPLOADS": "max_concurrent_uploads",
            "UPLOAD_CACHE_CONTROL": "upload_cache_control",
        },
        repr=False,
    )

    def get_attribute_for_key(self, key: str) -> str | None:
        """Get the attribute name for a config key."""
        return self._key_mapping.get(key)

    def get_key_for_attribute(self, attr: str) -> str | None:
        """Get the config key for an attribute name."""
        for key, value in self._key_mapping.items():
            if value == attr:
                return key
        return None

    @classmethod
    def get_config_keys(cls) -> list[str]:
        """Get list of all valid configuration keys."""
        temp = cls()
        return list(temp._key_mapping.keys())

    @property
    def effective_timeout_seconds(self) -> float:
        """Timeout clamped to (0, MAX_TIMEOUT_SECONDS]."""
        if self.ticketing_timeout_seconds <= 0:
            return DEFAULT_TIMEOUT_SECONDS
        return min(self.ticketing_timeout_seconds, MAX_TIMEOUT_SECONDS)

    @property
    def effective_max_concurrent_uploads(self) -> int:
        """Upload concurrency clamped to [1, MAX_CONCURRENT_UPLOADS_LIMIT]."""
        return max(1, min(self.max_concurrent_uploads, MAX_CONCURRENT_UPLOADS_LIMIT))


# Default configuration file path
CONFIG_FILE = Path.home() / ".bugtrail-config"

# Well-known keys of the credential slot in the key-value store
TICKETING_API_KEY = "TICKETING_API_KEY"
TICKETING_TEAM_ID = "TICKETING_TEAM_ID"
TICKETING_WORKSPACE_ID = "TICKETING_WORKSPACE_ID"
CREDENTIAL_KEYS = (TICKETING_API_KEY, TICKETING_TEAM_ID, TICKETING_WORKSPACE_ID)


__all__ = [
    "Settings",
    "CONFIG_FILE",
    "CREDENTIAL_KEYS",
    "TICKETING_API_KEY",
    "TICKETING_TEAM_ID",
    "TICKETING_WORKSPACE_ID",
    "DEFAULT_LINEAR_API_URL",
    "DEFAULT_TIMEOUT_SECONDS",
    "DEFAULT_MAX_CONCURRENT_UPLOADS",
    "DEFAULT_UPLOAD_CACHE_CONTROL",
    "MAX_TIMEOUT_SECONDS",
    "MAX_CONCURRENT_UPLOADS_LIMIT",
]
