"""Tests for config secret validation."""

from unittest.mock import patch

import pytest
from pydantic import ValidationError

from mintchat.core.config import Settings

BASE_ENV = {
    "SUPABASE_URL": "https://test.supabase.co",
    "SUPABASE_SERVICE_ROLE_KEY": "test-service-key",
}
PROD_ENV = {**BASE_ENV, "ENVIRONMENT": "production", "MARKETPLACE_WEBHOOK_SECRET": "s3cret"}


class TestSecretValidation:
    """Test that required secrets are validated at startup."""

    def test_missing_single_secret_raises_error(self):
        """Missing one required secret raises ValueError."""
        env = {**BASE_ENV, "SUPABASE_URL": ""}
        with patch.dict("os.environ", env, clear=True):
            with pytest.raises(ValidationError) as exc_info:
                Settings(_env_file=None)

            assert "SUPABASE_URL" in str(exc_info.value)

    def test_missing_multiple_secrets_lists_all(self):
        """Missing multiple secrets lists all in error message."""
        env = {"SUPABASE_URL": "", "SUPABASE_SERVICE_ROLE_KEY": "  "}
        with patch.dict("os.environ", env, clear=True):
            with pytest.raises(ValidationError) as exc_info:
                Settings(_env_file=None)

            error_str = str(exc_info.value)
            assert "SUPABASE_URL" in error_str
            assert "SUPABASE_SERVICE_ROLE_KEY" in error_str

    def test_all_secrets_present_succeeds(self):
        """All required secrets present allows Settings to load."""
        with patch.dict("os.environ", BASE_ENV, clear=True):
            settings = Settings(_env_file=None)
            assert settings.supabase_url == "https://test.supabase.co"

    def test_marketplace_secret_is_optional(self):
        """Webhook secret defaults to empty (checks disabled)."""
        with patch.dict("os.environ", BASE_ENV, clear=True):
            settings = Settings(_env_file=None)
            assert settings.marketplace_webhook_secret == ""


class TestDefaults:
    """Test defaults of the non-secret settings."""

    def test_environment_defaults_to_development(self):
        with patch.dict("os.environ", BASE_ENV, clear=True):
            settings = Settings(_env_file=None)
            assert settings.environment == "development"

    def test_realtime_and_rate_limit_enabled_by_default(self):
        with patch.dict("os.environ", BASE_ENV, clear=True):
            settings = Settings(_env_file=None)
            assert settings.realtime_enabled is True
            assert settings.rate_limit_enabled is True
            assert settings.api_prefix == "/api/v1"

    def test_realtime_can_be_disabled(self):
        env = {**BASE_ENV, "REALTIME_ENABLED": "false"}
        with patch.dict("os.environ", env, clear=True):
            settings = Settings(_env_file=None)
            assert settings.realtime_enabled is False


class TestCorsValidation:
    """Test CORS origin validation in production."""

    def test_cors_allows_localhost_in_development(self):
        """Localhost origins are allowed in development."""
        env = {**BASE_ENV, "ENVIRONMENT": "development", "CORS_ORIGINS": '["http://localhost:3000"]'}
        with patch.dict("os.environ", env, clear=True):
            settings = Settings(_env_file=None)
            assert "http://localhost:3000" in settings.cors_origins
            assert settings.is_production is False

    def test_cors_rejects_localhost_in_production(self):
        """Localhost origins are rejected in production."""
        env = {**PROD_ENV, "CORS_ORIGINS": '["http://localhost:3000"]'}
        with patch.dict("os.environ", env, clear=True):
            with pytest.raises(ValidationError) as exc_info:
                Settings(_env_file=None)
            assert "localhost" in str(exc_info.value).lower()

    def test_cors_rejects_wildcard_in_production(self):
        """Wildcard origin is rejected in production."""
        env = {**PROD_ENV, "CORS_ORIGINS": '["*"]'}
        with patch.dict("os.environ", env, clear=True):
            with pytest.raises(ValidationError) as exc_info:
                Settings(_env_file=None)
            assert "wildcard" in str(exc_info.value).lower()

    def test_cors_allows_https_in_production(self):
        """HTTPS origins are allowed in production."""
        env = {**PROD_ENV, "CORS_ORIGINS": '["https://mintchat.app"]'}
        with patch.dict("os.environ", env, clear=True):
            settings = Settings(_env_file=None)
            assert "https://mintchat.app" in settings.cors_origins
            assert settings.is_production is True


class TestMarketplaceSecretInProduction:
    """The webhook secret is mandatory once deployed."""

    def test_missing_secret_rejected_in_production(self):
        env = {**PROD_ENV, "MARKETPLACE_WEBHOOK_SECRET": "", "CORS_ORIGINS": '["https://mintchat.app"]'}
        with patch.dict("os.environ", env, clear=True):
            with pytest.raises(ValidationError) as exc_info:
                Settings(_env_file=None)
            assert "MARKETPLACE_WEBHOOK_SECRET" in str(exc_info.value)
