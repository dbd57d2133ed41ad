"""
Unit Tests for Configuration Settings

Tests the settings loading, validation, and default values.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from cloudpc.core.config.settings import Settings, get_settings, reload_settings


@pytest.mark.unit
class TestSettingsDefaults:
    """Test Settings defaults and grouped views."""

    def test_settings_has_grouped_views(self):
        """Test that every configuration group is reachable."""
        settings = Settings()

        for group in ("redis", "database", "auth", "cache", "websocket", "lifecycle", "rate_limit", "logging", "app"):
            assert getattr(settings, group) is not None

    def test_auth_defaults(self):
        """Test token lifetime and lockout defaults."""
        auth = Settings().auth

        assert auth.JWT_ALGORITHM == "HS256"
        assert auth.JWT_EXPIRE_MINUTES == 7 * 24 * 60
        assert auth.MAX_LOGIN_ATTEMPTS == 5
        assert auth.ACCOUNT_LOCK_MINUTES == 120

    def test_rate_limit_defaults(self):
        """Test the general and credential endpoint limits."""
        rate_limit = Settings().rate_limit

        assert rate_limit.RATE_LIMIT_DEFAULT == "100/15minutes"
        assert rate_limit.RATE_LIMIT_AUTH == "5/15minutes"

    def test_lifecycle_delays(self):
        """Test the simulated transition delays."""
        lifecycle = Settings().lifecycle

        assert lifecycle.LIFECYCLE_START_DELAY == 3.0
        assert lifecycle.LIFECYCLE_STOP_DELAY == 2.0
        assert lifecycle.LIFECYCLE_RESTART_DELAY == 5.0

    def test_api_base_path(self):
        """Test REST routes are mounted under /api by default."""
        assert Settings().app.API_BASE_PATH == "/api"

    def test_views_reflect_overrides(self):
        """Test grouped views are built from the flat fields."""
        settings = Settings(REDIS_HOST="cache.internal", WS_HISTORY_LIMIT=5)

        assert settings.redis.REDIS_HOST == "cache.internal"
        assert settings.websocket.WS_HISTORY_LIMIT == 5


@pytest.mark.unit
class TestSettingsValidation:
    """Test field validation."""

    def test_log_level_is_upper_cased(self):
        """Test LOG_LEVEL accepts lower case and normalizes it."""
        assert Settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

    def test_invalid_log_level_rejected(self):
        """Test an unknown LOG_LEVEL fails validation."""
        with pytest.raises(PydanticValidationError):
            Settings(LOG_LEVEL="verbose")

    def test_invalid_environment_rejected(self):
        """Test ENVIRONMENT is limited to the known deployment names."""
        with pytest.raises(PydanticValidationError):
            Settings(ENVIRONMENT="qa")


@pytest.mark.unit
class TestSettingsSingleton:
    """Test get_settings / reload_settings."""

    def test_get_settings_is_cached(self):
        """Test repeated calls return the same instance."""
        assert get_settings() is get_settings()

    def test_reload_reads_environment(self, monkeypatch):
        """Test reload_settings picks up environment changes."""
        monkeypatch.setenv("APP_NAME", "Reloaded Manager")
        try:
            assert reload_settings().app.APP_NAME == "Reloaded Manager"
            assert get_settings().app.APP_NAME == "Reloaded Manager"
        finally:
            monkeypatch.delenv("APP_NAME")
            reload_settings()
