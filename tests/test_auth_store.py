"""Tests for bugtrail.integrations.auth module."""

from unittest.mock import MagicMock

import pytest

from bugtrail.config import ConfigManager
from bugtrail.integrations.auth import KeyValueStore, TicketingCredentialStore
from bugtrail.integrations.ticketing import InvalidConfigError, TicketingCredentials


class DictStore:
    """In-memory KeyValueStore."""

    def __init__(self, values=None):
        self.values = dict(values or {})

    def get(self, key):
        return self.values.get(key)

    def set(self, key, value):
        self.values[key] = value


class TestKeyValueStoreProtocol:
    """ConfigManager is usable as a credential backing store."""

    def test_config_manager_satisfies_protocol(self, tmp_path):
        assert isinstance(ConfigManager(tmp_path / "config"), KeyValueStore)

    def test_dict_store_satisfies_protocol(self):
        assert isinstance(DictStore(), KeyValueStore)


class TestLoad:
    """Tests for TicketingCredentialStore.load."""

    def test_no_api_key(self):
        """Returns None when no API key is stored."""
        assert TicketingCredentialStore(DictStore()).load() is None

    def test_blank_api_key(self):
        """A whitespace API key counts as absent."""
        store = DictStore({"TICKETING_API_KEY": "  ", "TICKETING_TEAM_ID": "team-1"})
        assert TicketingCredentialStore(store).load() is None

    def test_full_credentials(self):
        store = DictStore(
            {
                "TICKETING_API_KEY": "lin_api_x",
                "TICKETING_TEAM_ID": "team-1",
                "TICKETING_WORKSPACE_ID": "ws-1",
            }
        )

        credentials = TicketingCredentialStore(store).load()

        assert credentials == TicketingCredentials(
            api_key="lin_api_x", team_id="team-1", workspace_id="ws-1"
        )

    def test_empty_optionals_become_none(self):
        store = DictStore(
            {"TICKETING_API_KEY": "lin_api_x", "TICKETING_TEAM_ID": "", "TICKETING_WORKSPACE_ID": ""}
        )

        credentials = TicketingCredentialStore(store).load()

        assert credentials.team_id is None
        assert credentials.workspace_id is None


class TestSave:
    """Tests for TicketingCredentialStore.save."""

    def test_writes_all_three_keys(self):
        store = DictStore()

        TicketingCredentialStore(store).save(TicketingCredentials(api_key="lin_api_x"))

        assert store.values == {
            "TICKETING_API_KEY": "lin_api_x",
            "TICKETING_TEAM_ID": "",
            "TICKETING_WORKSPACE_ID": "",
        }

    def test_round_trip_through_config_file(self, tmp_path):
        """Saved credentials survive a reload of the config file."""
        config_path = tmp_path / "config"
        credentials = TicketingCredentials(api_key="lin_api_x", team_id="team-1")
        TicketingCredentialStore(ConfigManager(config_path)).save(credentials)

        reloaded = ConfigManager(config_path)
        reloaded.load()

        assert TicketingCredentialStore(reloaded).load() == credentials
        assert (config_path.stat().st_mode & 0o777) == 0o600

    def test_invalid_value_raises_invalid_config(self):
        """Store validation errors surface as InvalidConfigError without the key."""
        store = MagicMock()
        store.set.side_effect = ValueError("Config value for TICKETING_API_KEY must be a single line")

        with pytest.raises(InvalidConfigError) as exc_info:
            TicketingCredentialStore(store).save(TicketingCredentials(api_key="lin_api_x\nmore"))

        assert "lin_api_x" not in str(exc_info.value)

    def test_write_error_raises_invalid_config(self):
        store = MagicMock()
        store.set.side_effect = PermissionError(13, "Permission denied")

        with pytest.raises(InvalidConfigError, match="Permission denied"):
            TicketingCredentialStore(store).save(TicketingCredentials(api_key="lin_api_x"))
