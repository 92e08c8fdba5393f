"""
Configuration settings for the coursework engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Storage
    # ========================================
    database_url: str = Field(
        default="sqlite:///coursework.db",
        description="SQLAlchemy connection string for the SQL document store",
    )
    store_backend: Literal["sql", "memory"] = Field(
        default="sql",
        description="Document store implementation backing the engine",
    )
    storage_retry_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts for a storage call before surfacing StorageUnavailable",
    )
    storage_retry_backoff_seconds: float = Field(
        default=0.05,
        ge=0.0,
        description="Base delay of the exponential backoff between storage retries",
    )

    # ========================================
    # Enrollment
    # ========================================
    progress_step: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Progress added by one 'continue learning' step",
    )
    progress_update_attempts: int = Field(
        default=5,
        ge=1,
        description="Re-reads allowed when a progress write loses a concurrent race",
    )

    # ========================================
    # Assessments
    # ========================================
    default_time_limit_minutes: int = Field(
        default=30,
        ge=1,
        description="Time limit used when an assessment draft does not set one",
    )

    # ========================================
    # Certificates
    # ========================================
    certificate_number_prefix: str = Field(
        default="CERT",
        min_length=1,
        description="Prefix of issued certificate numbers",
    )
    certificate_allow_resubmission: bool = Field(
        default=True,
        description="Allow a new certificate request after a rejection",
    )

    # ========================================
    # Analytics
    # ========================================
    recent_activity_limit: int = Field(
        default=5,
        ge=1,
        description="Number of recent assessment results shown in reports",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional log file path (rotated by loguru)",
    )

    # ========================================
    # API Server
    # ========================================
    api_host: str = Field(
        default="127.0.0.1",
        description="API server host",
    )
    api_port: int = Field(
        default=8100,
        description="API server port",
    )

    def get_retry_config(self) -> dict[str, float]:
        """Get storage retry configuration as a dictionary."""
        return {
            "attempts": self.storage_retry_attempts,
            "backoff_seconds": self.storage_retry_backoff_seconds,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
