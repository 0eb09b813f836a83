"""Configuration management for BUGTRAIL."""

from bugtrail.config.manager import ConfigManager
from bugtrail.config.settings import CONFIG_FILE, CREDENTIAL_KEYS, Settings

__all__ = [
    "CONFIG_FILE",
    "CREDENTIAL_KEYS",
    "ConfigManager",
    "Settings",
]
