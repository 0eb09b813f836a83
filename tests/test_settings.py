"""Tests for bugtrail.config.settings module."""

from bugtrail.config.settings import (
    DEFAULT_TIMEOUT_SECONDS,
    MAX_CONCURRENT_UPLOADS_LIMIT,
    MAX_TIMEOUT_SECONDS,
    Settings,
)


class TestSettingsKeys:
    """Tests for the config key mapping."""

    def test_config_keys(self):
        assert Settings.get_config_keys() == [
            "TICKETING_PROVIDER",
            "LINEAR_API_URL",
            "TICKETING_TIMEOUT_SECONDS",
            "MAX_CONCURRENT_UPLOADS",
            "UPLOAD_CACHE_CONTROL",
        ]

    def test_key_attribute_round_trip(self):
        settings = Settings()

        assert settings.get_attribute_for_key("LINEAR_API_URL") == "linear_api_url"
        assert settings.get_key_for_attribute("linear_api_url") == "LINEAR_API_URL"
        assert settings.get_attribute_for_key("UNKNOWN") is None
        assert settings.get_key_for_attribute("unknown") is None


class TestEffectiveValues:
    """Tests for clamped values."""

    def test_timeout_defaults_when_not_positive(self):
        assert Settings(ticketing_timeout_seconds=0).effective_timeout_seconds == DEFAULT_TIMEOUT_SECONDS

    def test_timeout_is_capped(self):
        assert Settings(ticketing_timeout_seconds=10_000).effective_timeout_seconds == MAX_TIMEOUT_SECONDS

    def test_concurrency_is_clamped(self):
        assert Settings(max_concurrent_uploads=0).effective_max_concurrent_uploads == 1
        assert (
            Settings(max_concurrent_uploads=99).effective_max_concurrent_uploads
            == MAX_CONCURRENT_UPLOADS_LIMIT
        )
        assert Settings(max_concurrent_uploads=4).effective_max_concurrent_uploads == 4
