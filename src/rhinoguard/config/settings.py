"""Application settings using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """RhinoGuard alert engine configuration from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )

    # Application
    app_name: str = Field(default="RhinoGuard Alerts", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, ge=1, le=65535, description="Server port")

    # Detection backend
    api_url: str = Field(
        default="http://localhost:8000", description="Detection backend base URL"
    )
    request_timeout_seconds: float = Field(
        default=10.0, gt=0, description="Per-request timeout for backend calls"
    )
    max_retries: int = Field(
        default=2, ge=1, le=5, description="Attempts per request on 5xx/transport errors"
    )

    # Circuit Breaker
    circuit_breaker_threshold: int = Field(
        default=5, ge=1, description="Failures before circuit opens"
    )
    circuit_breaker_cooldown: int = Field(
        default=30, ge=1, description="Seconds before half-open"
    )

    # Feature flags
    alerts_enabled: bool = Field(default=True, description="Allow alert creation")
    ranger_positions_enabled: bool = Field(
        default=False, description="Poll ranger positions (backend support required)"
    )
    real_time_updates_enabled: bool = Field(
        default=True, description="Start the polling sync engine with the app"
    )

    # Alert lifecycle
    poll_interval_seconds: float = Field(
        default=10.0, gt=0, description="Seconds between sync cycles"
    )
    dedup_window_seconds: int = Field(
        default=30, ge=0, description="Reject repeat alerts for a detection within this window"
    )
    recent_window_hours: float = Field(
        default=2.0, gt=0, description="Terminal alerts updated within this window are 'recent'"
    )
    alert_fetch_limit: int = Field(
        default=50, ge=1, le=200, description="Max alerts requested per refresh"
    )
    notes_max_length: int = Field(
        default=240, ge=1, description="Max characters kept in operator notes"
    )
    default_operator: str = Field(
        default="Operator 1", description="createdBy used when no operator is given"
    )

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        """Validate backend URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("API URL must start with http:// or https://")
        return v.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
