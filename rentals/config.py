"""Centralized application configuration using Pydantic settings."""
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven configuration shared across services."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    database_url: str = Field(
        default="sqlite:///./rentals.db",
        description="SQLAlchemy database URL. Defaults to local SQLite for development.",
    )
    run_db_migrations: bool = Field(
        default=False,
        description="Whether this service should create/update database tables on startup.",
    )
    store_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Upper bound (s) for acquiring a connection or waiting on a locked store.",
    )
    jwt_secret: str = Field(default="super-secret", description="JWT signing secret")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_expire_minutes: int = Field(default=60, description="Token lifetime in minutes")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")
    default_rate_limit: str = Field(default="30/minute", description="Global rate limiting rule")
    rate_limiting_enabled: bool = Field(default=True, description="Toggle to disable SlowAPI limits (useful in tests)")
    vehicle_cache_ttl: int = Field(default=60, description="TTL (s) for cached vehicle lookups")

    sweep_enabled: bool = Field(default=True, description="Run the booking reconciliation sweeper in the bookings service")
    sweep_interval_seconds: float = Field(default=30.0, gt=0, description="Seconds between two reconciliation sweeps")
    auto_cancel_reason: str = Field(
        default="Auto-cancelled: Payment not received before start time",
        description="Cancellation reason stamped on bookings the sweeper cancels for non-payment",
    )

    vehicles_service_port: int = 8002
    bookings_service_port: int = 8003


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of the Settings object."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the cached Settings instance (useful for tests)."""

    get_settings.cache_clear()
