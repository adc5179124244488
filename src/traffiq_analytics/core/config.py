"""Configuration management for TraffiQ Analytics.

Provides centralized configuration management using Pydantic settings
with environment variable support and validation.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings

OFFICIAL_LOCATIONS: dict[str, str] = {
    "i695_balt_natl": "I-695 @ Balt Natl Pike",
    "i97_md178": "I-97 @ MD 178",
    "i97_md32": "I-97 N of MD 32",
}


class StorageConfig(BaseModel):
    """Key-value storage configuration settings."""

    backend: Literal["memory", "file", "redis"] = Field(
        default="file", description="Storage backend implementation"
    )
    base_key: str = Field(
        default="traffiq_data", description="Base key of the analytics document"
    )
    session_key: str = Field(
        default="trafiq_session", description="Key of the current session record"
    )
    data_dir: Path = Field(
        default=Path("data/storage"), description="Directory for the file backend"
    )
    quota_bytes: int | None = Field(
        default=None, ge=1, description="Optional per-area quota for the memory backend"
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0", description="Redis connection URL"
    )
    channel: str = Field(
        default="traffiq:storage", description="Redis channel for change notifications"
    )


class AnalyticsConfig(BaseModel):
    """Analytics aggregation and log bounding settings."""

    max_incidents: int = Field(default=100, ge=1, description="Incident log capacity")
    max_recommendations: int = Field(
        default=50, ge=1, description="Recommendation log capacity"
    )
    max_emergency_events: int = Field(
        default=50, ge=1, description="Emergency event log capacity"
    )
    recommendation_dedup_seconds: int = Field(
        default=300, ge=0, description="Window in which a repeated recommendation is dropped"
    )
    peak_hours_limit: int = Field(default=5, ge=1, description="Peak hours to report")
    busiest_locations_limit: int = Field(
        default=4, ge=1, description="Busiest locations to report"
    )
    high_congestion_vehicles: int = Field(
        default=3000, description="Vehicle total above which a location is high"
    )
    medium_congestion_vehicles: int = Field(
        default=1500, description="Vehicle total above which a location is medium"
    )
    default_location_id: str | None = Field(
        default="i695_balt_natl", description="Location attributed when none is set"
    )
    locations: dict[str, str] = Field(
        default_factory=lambda: dict(OFFICIAL_LOCATIONS),
        description="Canonical location id to display name directory",
    )

    @field_validator("medium_congestion_vehicles")
    @classmethod
    def validate_thresholds(cls, v: int, info: ValidationInfo) -> int:
        """Medium threshold must not exceed the high threshold."""
        high = info.data.get("high_congestion_vehicles")
        if high is not None and v > high:
            raise ValueError("medium_congestion_vehicles must be <= high_congestion_vehicles")
        return v


class Settings(BaseSettings):
    """Main application settings.

    All settings can be overridden via environment variables.
    For nested settings, use double underscore notation:
    STORAGE__BACKEND=redis
    """

    app_name: str = Field(default="TraffiQ Analytics", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    storage: StorageConfig = Field(default_factory=StorageConfig)
    analytics: AnalyticsConfig = Field(default_factory=AnalyticsConfig)

    data_dir: Path = Field(default=Path("data"), description="Data directory")
    logs_dir: Path | None = Field(default=Path("logs"), description="Logs directory")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment."""
        valid_envs = {"development", "testing", "staging", "production"}
        if v.lower() not in valid_envs:
            raise ValueError(f"Invalid environment: {v}. Must be one of {valid_envs}")
        return v.lower()

    def create_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        directories = [self.data_dir]
        if self.logs_dir:
            directories.append(self.logs_dir)
        if self.storage.backend == "file":
            directories.append(self.storage.data_dir)
        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings: Application settings instance
    """
    settings = Settings()
    settings.create_directories()
    return settings


def get_settings_for_testing(**overrides: Any) -> Settings:
    """Get settings for testing with optional overrides.

    Args:
        **overrides: Settings to override

    Returns:
        Settings: Test settings instance
    """
    get_settings.cache_clear()

    test_env = {
        "ENVIRONMENT": "testing",
        "STORAGE__BACKEND": "memory",
        "DEBUG": "true",
        **{k.upper(): str(v) for k, v in overrides.items()},
    }

    original_env = {}
    for key, value in test_env.items():
        original_env[key] = os.environ.get(key)
        os.environ[key] = value

    try:
        return Settings(logs_dir=None)
    finally:
        for key, original_value in original_env.items():
            if original_value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = original_value
