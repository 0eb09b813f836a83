"""Configuration manager for BUGTRAIL.

This module provides the ConfigManager class for loading, saving, and
managing configuration values with a cascading hierarchy:

    1. Environment Variables (highest priority)
    2. Local Config (.bugtrail in project/parent directories)
    3. Global Config (~/.bugtrail-config)
    4. Built-in Defaults (lowest priority)

ConfigManager also satisfies the KeyValueStore protocol (get/set), which
makes it the default backing store for ticketing credentials.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path

from bugtrail.config.settings import CONFIG_FILE, CREDENTIAL_KEYS, Settings

logger = logging.getLogger(__name__)

# Keys containing these substrings are considered sensitive and are never logged
SENSITIVE_KEY_PATTERNS = ("TOKEN", "KEY", "SECRET", "PASSWORD", "CREDENTIAL")

_KEY_NAME_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def is_sensitive_key(key: str) -> bool:
    """Check if a configuration key holds sensitive data.

    Args:
        key: The configuration key name

    Returns:
        True if the key is considered sensitive
    """
    key_upper = key.upper()
    return any(pattern in key_upper for pattern in SENSITIVE_KEY_PATTERNS)


class ConfigManager:
    """Manages configuration loading and saving with cascading hierarchy.

    Configuration Precedence (highest to lowest):
    1. Environment Variables - CI/CD, temporary overrides
    2. Local Config (.bugtrail) - Project-specific settings
    3. Global Config (~/.bugtrail-config) - User defaults
    4. Built-in Defaults - Fallback values

    Security features:
    - Safe line-by-line parsing (no eval/exec)
    - Key name validation
    - Atomic file writes
    - Secure file permissions (600)
    - Sensitive values are never logged

    Attributes:
        settings: Current settings instance
        _raw_values: Merged raw key-value pairs from all sources
        _local_config_path: Path to discovered local .bugtrail file
        _global_config_path: Path to global ~/.bugtrail-config file
    """

    LOCAL_CONFIG_NAME = ".bugtrail"
    GLOBAL_CONFIG_NAME = ".bugtrail-config"

    def __init__(self, config_path: Path | None = None) -> None:
        """Initialize the configuration manager.

        Args:
            config_path: Optional custom path to override global config file.
                         If provided, only this file is used (no local lookup).
        """
        self._legacy_mode = config_path is not None
        self._global_config_path = config_path or CONFIG_FILE
        self._local_config_path: Path | None = None
        self.settings = Settings()
        self._raw_values: dict[str, str] = {}
        # Track source of each config value for debugging
        self._config_sources: dict[str, str] = {}

    @property
    def config_path(self) -> Path:
        """Return the file that save() writes to."""
        return self._global_config_path

    def load(self) -> Settings:
        """Load configuration from all sources with cascading precedence.

        Loading order (later sources override earlier ones):
        1. Built-in defaults (from Settings dataclass)
        2. Global config (~/.bugtrail-config)
        3. Local config (.bugtrail in project/parent directories)
        4. Environment variables (highest priority)

        Returns:
            Settings instance with loaded values
        """
        self._raw_values = {}
        self._config_sources = {}
        self.settings = Settings()

        if self._global_config_path.exists():
            logger.debug("Loading global configuration from %s", self._global_config_path)
            self._load_file(self._global_config_path, source="global")
        else:
            logger.debug("No global configuration file found at %s", self._global_config_path)

        if not self._legacy_mode:
            local_path = self._find_local_config()
            if local_path:
                self._local_config_path = local_path
                logger.debug("Loading local configuration from %s", local_path)
                self._load_file(local_path, source=f"local ({local_path})")

        self._load_environment()

        for key, value in self._raw_values.items():
            self._apply_value_to_settings(key, value)

        logger.debug("Configuration loaded successfully (%d keys)", len(self._raw_values))
        return self.settings

    def _find_local_config(self) -> Path | None:
        """Find local .bugtrail config by traversing up from CWD.

        Stops at the first .bugtrail file, at a repository root (.git),
        or at the filesystem root.

        Returns:
            Path to local config file, or None if not found
        """
        current = Path.cwd()
        while True:
            config_path = current / self.LOCAL_CONFIG_NAME
            if config_path.exists():
                return config_path

            if (current / ".git").exists():
                break

            parent = current.parent
            if parent == current:
                break
            current = parent

        return None

    def _load_file(self, path: Path, source: str = "file") -> None:
        """Load key=value pairs from a config file.

        Args:
            path: Path to the config file
            source: Source identifier for debugging
        """
        pattern = re.compile(r"^([a-zA-Z_][a-zA-Z0-9_]*)=(.*)$")

        with path.open() as f:
            for line in f:
                line = line.strip()

                if not line or line.startswith("#"):
                    continue

                match = pattern.match(line)
                if match:
                    key, value = match.groups()

                    # Remove surrounding quotes
                    if (value.startswith('"') and value.endswith('"')) or (
                        value.startswith("'") and value.endswith("'")
                    ):
                        value = value[1:-1]

                    self._raw_values[key] = value
                    self._config_sources[key] = source

    def _load_environment(self) -> None:
        """Override config with environment variables.

        Only settings keys and credential keys are read, to avoid polluting
        the configuration with unrelated environment variables.
        """
        known_keys = [*Settings.get_config_keys(), *CREDENTIAL_KEYS]
        for key in known_keys:
            env_value = os.environ.get(key)
            if env_value is not None:
                self._raw_values[key] = env_value
                self._config_sources[key] = "environment"

    def _apply_value_to_settings(self, key: str, value: str) -> None:
        """Apply a raw config value to the settings object.

        Unparseable numbers keep the default.

        Args:
            key: Configuration key
            value: Raw string value from file
        """
        attr = self.settings.get_attribute_for_key(key)
        if attr is None:
            return

        current_value = getattr(self.settings, attr)

        if isinstance(current_value, bool):
            setattr(self.settings, attr, value.lower() in ("true", "1", "yes"))
        elif isinstance(current_value, int):
            try:
                setattr(self.settings, attr, int(value))
            except ValueError:
                logger.warning("Ignoring non-integer value for %s", key)
        elif isinstance(current_value, float):
            try:
                setattr(self.settings, attr, float(value))
            except ValueError:
                logger.warning("Ignoring non-numeric value for %s", key)
        else:
            setattr(self.settings, attr, value)

    def set(self, key: str, value: str) -> None:
        """Save a configuration value to file.

        Security: Validates key name, uses atomic file replacement.

        Args:
            key: Configuration key (alphanumeric + underscore)
            value: Configuration value

        Raises:
            ValueError: If key name is invalid or value spans lines
        """
        if not _KEY_NAME_PATTERN.match(key):
            raise ValueError(f"Invalid config key: {key}")
        if "\n" in value or "\r" in value:
            raise ValueError(f"Config value for {key} must be a single line")

        self._raw_values[key] = value
        self._apply_value_to_settings(key, value)

        existing_lines: list[str] = []
        if self.config_path.exists():
            existing_lines = self.config_path.read_text().splitlines()

        new_lines: list[str] = []
        written_keys: set[str] = set()
        key_pattern = re.compile(r"^([a-zA-Z_][a-zA-Z0-9_]*)=")

        for line in existing_lines:
            # Preserve comments and empty lines
            if not line.strip() or line.strip().startswith("#"):
                new_lines.append(line)
                continue

            match = key_pattern.match(line)
            if match and match.group(1) == key:
                new_lines.append(f'{key}="{value}"')
                written_keys.add(key)
            else:
                new_lines.append(line)

        if key not in written_keys:
            new_lines.append(f'{key}="{value}"')

        self._atomic_write(new_lines)
        shown = "****" if is_sensitive_key(key) else value
        logger.info("Configuration saved: %s=%s", key, shown)

    def _atomic_write(self, lines: list[str]) -> None:
        """Atomically write lines to config file.

        Args:
            lines: Lines to write
        """
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            dir=self.config_path.parent,
            prefix=".bugtrail-config-",
        )
        try:
            with os.fdopen(fd, "w") as f:
                f.write("\n".join(lines))
                if lines:
                    f.write("\n")

            # Set secure permissions before moving
            os.chmod(temp_path, 0o600)

            Path(temp_path).replace(self.config_path)
        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    def get(self, key: str, default: str | None = None) -> str | None:
        """Get a configuration value.

        Args:
            key: Configuration key to retrieve
            default: Value returned when the key is not set

        Returns:
            Configuration value or default
        """
        return self._raw_values.get(key, default)

    def get_config_source(self, key: str) -> str:
        """Return the source of a configuration value (for debugging).

        Returns:
            "environment", "local (/path)", "global", "set",
            or "default" if the value comes from built-in defaults.
        """
        if key in self._config_sources:
            return self._config_sources[key]
        if key in self._raw_values:
            return "set"
        return "default"

    def get_local_config_path(self) -> Path | None:
        """Return the discovered local config path, if any."""
        return self._local_config_path


__all__ = [
    "ConfigManager",
    "is_sensitive_key",
]
