"""
Application Settings for EventTria

Centralized configuration using Pydantic Settings with .env support.
All environment variables are validated at startup.
"""

from functools import lru_cache
from typing import Optional
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The database is the Supabase-hosted Postgres instance. Either
    DATABASE_URL or SUPABASE_URL + SUPABASE_PASSWORD must be provided
    before the first query is made.
    """

    # Supabase Configuration
    supabase_url: str
    supabase_service_role_key: str
    supabase_jwt_secret: Optional[str] = None

    # Application Settings
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # CORS Configuration
    allowed_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Subscription Configuration
    trial_duration_days: int = 30
    default_subscription_days: int = 365
    expiry_warning_days: int = 7

    # Session cache for current-user lookups
    session_cache_ttl_seconds: float = 5.0

    # Scheduled jobs (Bearer token expected from the external scheduler)
    cron_secret: Optional[str] = None

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
    def validate_durations(self) -> "Settings":
        """Reject non-positive subscription windows."""
        if self.trial_duration_days <= 0:
            raise ValueError("TRIAL_DURATION_DAYS must be positive")
        if self.default_subscription_days <= 0:
            raise ValueError("DEFAULT_SUBSCRIPTION_DAYS must be positive")
        if self.session_cache_ttl_seconds < 0:
            raise ValueError("SESSION_CACHE_TTL_SECONDS cannot be negative")
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience export for direct import
settings = get_settings()
