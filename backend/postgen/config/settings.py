"""
Application Settings for PostGen API

Centralized configuration using Pydantic Settings with .env support.
All environment variables are validated at startup; a missing key fails
the process instead of degrading to a non-functional client.
"""

from functools import lru_cache
from typing import Optional
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Components receive this object at construction time rather than
    reading module-level globals.
    """

    # Supabase Configuration (auth provider + hosted Postgres)
    supabase_url: str
    supabase_service_role_key: str
    supabase_jwt_secret: Optional[str] = None

    # Stripe Configuration
    stripe_secret_key: str
    stripe_webhook_secret: str
    stripe_corroborate_status: bool = True
    stripe_corroboration_timeout_seconds: float = 5.0

    # Subscription lifecycle
    subscription_period_days: int = 30

    # Content generation webhooks (one automation endpoint per platform)
    generation_webhook_linkedin: Optional[str] = None
    generation_webhook_instagram: Optional[str] = None
    generation_webhook_x: Optional[str] = None
    generation_webhook_facebook: Optional[str] = None
    generation_timeout_seconds: float = 120.0

    # Application Settings
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # CORS Configuration
    frontend_url: str = "http://localhost:8080"
    allowed_origins: list[str] = [
        "http://localhost:8080",
        "http://localhost:5173",
        "http://127.0.0.1:8080",
    ]

    # Database Configuration (SQLModel/SQLAlchemy)
    supabase_password: Optional[str] = None
    database_url: Optional[str] = None
    database_pool_size: int = 5
    database_max_overflow: int = 10
    database_pool_timeout: int = 30
    database_echo: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_configuration(self) -> "Settings":
        """Reject configurations that would only fail at request time."""
        if not self.database_url and not self.supabase_password:
            raise ValueError(
                "Either DATABASE_URL or SUPABASE_PASSWORD is required"
            )

        if self.is_production and not self.stripe_webhook_secret.startswith("whsec_"):
            raise ValueError(
                "STRIPE_WEBHOOK_SECRET must be a Stripe signing secret (whsec_...)"
            )

        if self.subscription_period_days < 1:
            raise ValueError("SUBSCRIPTION_PERIOD_DAYS must be positive")

        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment.lower() == "development"

    def generation_webhooks(self) -> dict[str, Optional[str]]:
        """Webhook URL per platform id."""
        return {
            "linkedin": self.generation_webhook_linkedin,
            "instagram": self.generation_webhook_instagram,
            "x": self.generation_webhook_x,
            "facebook": self.generation_webhook_facebook,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
