"""Unit tests for configuration management."""

import pytest
from pydantic import ValidationError

from traffiq_analytics.core.config import (
    OFFICIAL_LOCATIONS,
    AnalyticsConfig,
    Settings,
    StorageConfig,
    get_settings_for_testing,
)


class TestSettings:
    """Test configuration settings."""

    def test_default_settings(self):
        """Test default configuration values."""
        settings = Settings(_env_file=None)

        assert settings.app_name == "TraffiQ Analytics"
        assert settings.storage.base_key == "traffiq_data"
        assert settings.storage.session_key == "trafiq_session"
        assert settings.analytics.max_incidents == 100
        assert settings.analytics.max_recommendations == 50
        assert settings.analytics.recommendation_dedup_seconds == 300
        assert settings.analytics.locations == OFFICIAL_LOCATIONS

    def test_environment_validation(self):
        for env in ["development", "testing", "staging", "production"]:
            assert Settings(environment=env).environment == env

        with pytest.raises(ValidationError):
            Settings(environment="invalid")

    def test_log_level_validation(self):
        assert Settings(log_level="debug").log_level == "DEBUG"

        with pytest.raises(ValidationError):
            Settings(log_level="INVALID")

    def test_environment_detection(self):
        assert Settings(environment="production").is_production()
        assert not Settings(environment="production").is_development()
        assert Settings(environment="development").is_development()

    def test_nested_env_override(self, monkeypatch):
        monkeypatch.setenv("STORAGE__BACKEND", "redis")
        monkeypatch.setenv("ANALYTICS__MAX_INCIDENTS", "25")

        settings = Settings()

        assert settings.storage.backend == "redis"
        assert settings.analytics.max_incidents == 25

    def test_directory_creation(self, tmp_path):
        settings = Settings(
            data_dir=tmp_path / "data",
            logs_dir=tmp_path / "logs",
            storage=StorageConfig(data_dir=tmp_path / "kv"),
        )

        settings.create_directories()

        assert (tmp_path / "data").is_dir()
        assert (tmp_path / "logs").is_dir()
        assert (tmp_path / "kv").is_dir()


class TestAnalyticsConfig:
    def test_medium_threshold_cannot_exceed_high(self):
        with pytest.raises(ValidationError):
            AnalyticsConfig(high_congestion_vehicles=1000, medium_congestion_vehicles=2000)

    def test_capacities_must_be_positive(self):
        with pytest.raises(ValidationError):
            AnalyticsConfig(max_incidents=0)


class TestTestingSettings:
    def test_testing_settings_use_memory_backend(self):
        settings = get_settings_for_testing()

        assert settings.environment == "testing"
        assert settings.storage.backend == "memory"
        assert settings.logs_dir is None
        assert settings.debug

    def test_overrides_are_applied(self):
        settings = get_settings_for_testing(log_level="warning")

        assert settings.log_level == "WARNING"
