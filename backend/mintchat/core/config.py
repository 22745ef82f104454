"""
Mintchat settings.

Everything is read from the environment (or backend/.env). The store
credentials are mandatory; Redis and the marketplace secret have local
defaults so a developer can boot the API against a local stack.
"""

from functools import lru_cache
from typing import ClassVar
from urllib.parse import urlparse

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Origins that only make sense on a developer machine
_LOCAL_HOSTNAMES = {"localhost", "127.0.0.1", "0.0.0.0"}


def _blank(value: object) -> bool:
    return not isinstance(value, str) or not value.strip()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Store credentials, checked at startup
    REQUIRED_SECRETS: ClassVar[list[str]] = [
        "supabase_url",
        "supabase_service_role_key",
    ]

    # --- Runtime ---
    environment: str = "development"
    app_name: str = "Mintchat API"
    debug: bool = False

    # --- HTTP surface ---
    api_prefix: str = "/api/v1"
    cors_origins: list[str] = ["http://localhost:5173"]
    rate_limit_enabled: bool = True

    # --- Event store (Supabase / PostgREST) ---
    supabase_url: str = ""
    supabase_service_role_key: str = ""

    # --- Live channels (Redis pub/sub, also backs rate limiting) ---
    redis_url: str = "redis://localhost:6379"
    realtime_enabled: bool = True
    realtime_publish_timeout_seconds: float = 2.0

    # --- Marketplace webhooks ---
    # Empty disables the X-Marketplace-Secret check (development only)
    marketplace_webhook_secret: str = ""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @model_validator(mode="after")
    def validate_required_secrets(self) -> "Settings":
        """Fail fast when the store credentials are missing."""
        missing = [name.upper() for name in self.REQUIRED_SECRETS if _blank(getattr(self, name, ""))]
        if missing:
            raise ValueError(
                f"Missing required secrets: {', '.join(missing)}. "
                "Set these environment variables before starting the application."
            )
        return self

    @model_validator(mode="after")
    def validate_production_safety(self) -> "Settings":
        """Production needs real CORS origins and an authenticated marketplace webhook."""
        if not self.is_production:
            return self

        for origin in self.cors_origins:
            if origin == "*":
                raise ValueError(
                    "Wildcard (*) CORS origin is not allowed in production. "
                    "Specify exact origins instead."
                )
            hostname = urlparse(origin).hostname or origin
            if hostname in _LOCAL_HOSTNAMES:
                raise ValueError(
                    f"CORS origin '{origin}' uses hostname '{hostname}' which is not "
                    "allowed in production. Use HTTPS production URLs instead."
                )

        if _blank(self.marketplace_webhook_secret):
            raise ValueError(
                "MARKETPLACE_WEBHOOK_SECRET must be set in production; "
                "marketplace events would otherwise be accepted from anyone."
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
