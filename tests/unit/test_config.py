"""
Tests for the configuration module.
"""

import pytest
from pydantic import ValidationError


class TestSettings:
    """Tests for Settings class."""

    def test_settings_defaults(self):
        """Defaults need no environment to run the in-memory deployment."""
        from config.settings import get_settings_for_testing

        settings = get_settings_for_testing()

        assert settings.host == "0.0.0.0"
        assert settings.port == 8080
        assert settings.session_store_backend == "memory"
        assert settings.swipe_sessions_table == "swipe_sessions"
        assert settings.catalog_request_timeout_seconds == 5.0
        assert settings.generate_budget_seconds == 10.0
        assert settings.catalog_max_workers == 4
        assert settings.swipe_conflict_retries == 3

    def test_get_settings_is_cached(self):
        from config.settings import get_settings

        assert get_settings() is get_settings()

    def test_is_development_property(self):
        from config.settings import Settings

        for env in ["development", "dev", "local"]:
            assert Settings(_env_file=None, environment=env).is_development is True
        assert Settings(_env_file=None, environment="production").is_development is False

    def test_is_production_property(self):
        from config.settings import Settings

        for env in ["production", "prod"]:
            assert Settings(_env_file=None, environment=env).is_production is True
        assert Settings(_env_file=None, environment="development").is_production is False

    def test_cors_origins_parsing(self):
        """CORS origins can be given as a comma-separated string."""
        from config.settings import Settings

        settings = Settings(
            _env_file=None,
            cors_origins="http://localhost:3000, http://localhost:5173,",
        )

        assert settings.cors_origins == ["http://localhost:3000", "http://localhost:5173"]

    def test_cors_origins_from_environment(self, monkeypatch):
        """A comma-separated CORS_ORIGINS variable must not be parsed as JSON."""
        from config.settings import Settings

        monkeypatch.setenv("CORS_ORIGINS", "http://a.example,http://b.example")

        settings = Settings(_env_file=None)

        assert settings.cors_origins == ["http://a.example", "http://b.example"]

    def test_cors_origins_json_list_from_environment(self, monkeypatch):
        from config.settings import Settings

        monkeypatch.setenv("CORS_ORIGINS", '["http://a.example"]')

        assert Settings(_env_file=None).cors_origins == ["http://a.example"]

    def test_session_store_backend_validated(self):
        from config.settings import Settings

        assert Settings(_env_file=None, session_store_backend=" Supabase ").session_store_backend == "supabase"
        with pytest.raises(ValidationError):
            Settings(_env_file=None, session_store_backend="redis")

    def test_catalog_provider_validated(self):
        from config.settings import Settings

        assert Settings(_env_file=None, catalog_provider="LASTFM").catalog_provider == "lastfm"
        with pytest.raises(ValidationError):
            Settings(_env_file=None, catalog_provider="deezer")

    def test_reads_environment(self, monkeypatch):
        from config.settings import Settings

        monkeypatch.setenv("GENERATE_BUDGET_SECONDS", "2.5")
        monkeypatch.setenv("SWIPE_CONFLICT_RETRIES", "7")

        settings = Settings(_env_file=None)

        assert settings.generate_budget_seconds == 2.5
        assert settings.swipe_conflict_retries == 7

    def test_testing_overrides(self):
        from config.settings import get_settings_for_testing

        settings = get_settings_for_testing(port=9999)

        assert settings.port == 9999
        assert settings.supabase_jwt_secret == "test-jwt-secret"
        assert settings.environment == "testing"


class TestConstants:

    def test_pipeline_constants(self):
        from config.constants import DEFAULT_PIPELINE_CONFIG as config

        assert (config.MIN_SEEDS, config.MAX_SEEDS) == (1, 5)
        assert config.OVERSAMPLE_FACTOR == 2
        assert config.MIN_POPULARITY == 30
        assert config.REQUIRE_PREVIEW is True

    def test_pipeline_config_is_frozen(self):
        from dataclasses import FrozenInstanceError
        from config.constants import DEFAULT_PIPELINE_CONFIG

        with pytest.raises(FrozenInstanceError):
            DEFAULT_PIPELINE_CONFIG.MAX_SEEDS = 10


class TestDatabase:

    def test_client_requires_credentials(self, monkeypatch):
        from config.database import SupabaseClientError, get_supabase_client, get_supabase_client_optional
        from config.settings import get_settings

        monkeypatch.setenv("SUPABASE_URL", "")
        monkeypatch.setenv("SUPABASE_SERVICE_KEY", "")
        get_settings.cache_clear()
        get_supabase_client.cache_clear()
        try:
            with pytest.raises(SupabaseClientError):
                get_supabase_client()
            assert get_supabase_client_optional() is None
        finally:
            get_settings.cache_clear()
            get_supabase_client.cache_clear()

    def test_missing_supabase_settings(self):
        from config.database import missing_supabase_settings
        from config.settings import get_settings_for_testing

        assert missing_supabase_settings(
            get_settings_for_testing(supabase_url="", supabase_service_key="")
        ) == [
            "SUPABASE_URL",
            "SUPABASE_SERVICE_KEY",
        ]
        configured = get_settings_for_testing(
            supabase_url="https://x.supabase.co", supabase_service_key="key"
        )
        assert missing_supabase_settings(configured) == []

    def test_ping_reads_session_table(self, mock_supabase_client):
        from config.database import ping_swipe_sessions

        ping_swipe_sessions(mock_supabase_client, "swipe_sessions")

        mock_supabase_client.table.assert_called_with("swipe_sessions")
