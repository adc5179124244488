"""Core functionality for TraffiQ Analytics."""

from .config import Settings, get_settings
from .exceptions import (
    ConfigurationError,
    SerializationError,
    StorageError,
    TraffiqAnalyticsError,
)
from .logging import setup_logging

__all__ = [
    "Settings",
    "get_settings",
    "TraffiqAnalyticsError",
    "ConfigurationError",
    "StorageError",
    "SerializationError",
    "setup_logging",
]
