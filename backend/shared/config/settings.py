"""
Application settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with defaults for development."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite:///./gamehub.db"

    # JWT configuration (subscriber and API tokens)
    jwt_secret: str = "dev-secret-change-me-in-production"
    jwt_access_token_expire_minutes: int = 60 * 24

    # Webhook (GitHub issue events)
    webhook_secret: str = "dev-webhook-secret-change-me"
    # Comma-separated logins allowed to trigger mutations.
    # Empty means only the repository owner may do so.
    webhook_allowed_senders: str = ""
    webhook_rate_limit: str = "60/minute"

    # WebSocket subscriptions
    ws_keepalive_interval: float = 15.0
    ws_queue_max_size: int = 100
    # One of: drop_oldest, drop_newest, disconnect
    ws_backpressure_policy: str = "drop_oldest"
    ws_max_message_size: int = 64 * 1024  # 64 KB
    ws_send_timeout: float = 10.0

    # Comma-separated list of allowed origins (empty uses default localhost list)
    allowed_origins: str = ""

    # Server
    port: int = 8080

    # Environment
    environment: str = "development"
    debug: bool = True

    @property
    def allowed_sender_set(self) -> frozenset[str]:
        """Parsed webhook sender allow-list (case-insensitive logins)."""
        return frozenset(
            login.strip().lower()
            for login in self.webhook_allowed_senders.split(",")
            if login.strip()
        )

    def validate_production_secrets(self) -> list[str]:
        """
        Validate that secrets are properly configured for production.
        Returns a list of validation errors. Empty list means all checks pass.
        """
        errors = []

        weak_secrets = {
            "dev-secret-change-me-in-production",
            "dev-webhook-secret-change-me",
            "secret",
            "password",
            "changeme",
            "default",
        }

        if self.environment == "production":
            if self.jwt_secret in weak_secrets or len(self.jwt_secret) < 32:
                errors.append(
                    "JWT_SECRET must be at least 32 characters and not a default value in production"
                )

            if self.webhook_secret in weak_secrets or len(self.webhook_secret) < 16:
                errors.append(
                    "WEBHOOK_SECRET must be at least 16 characters and not a default value in production"
                )

            if self.debug:
                errors.append("DEBUG must be False in production")

            if not self.allowed_origins:
                errors.append(
                    "ALLOWED_ORIGINS must be set in production (comma-separated list of allowed domains)"
                )

        if self.ws_backpressure_policy not in ("drop_oldest", "drop_newest", "disconnect"):
            errors.append(
                f"WS_BACKPRESSURE_POLICY must be drop_oldest, drop_newest or disconnect "
                f"(got {self.ws_backpressure_policy!r})"
            )

        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience exports
settings = get_settings()

DATABASE_URL = settings.database_url
