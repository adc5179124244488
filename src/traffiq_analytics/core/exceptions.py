"""Custom exceptions for TraffiQ Analytics.

Defines a hierarchy of custom exceptions with error codes, messages,
and context information. The analytics core catches these at its
boundaries and degrades to defaults rather than propagating them.
"""

from typing import Any


class TraffiqAnalyticsError(Exception):
    """Base exception for all TraffiQ Analytics errors.

    Attributes:
        message: Human-readable error message
        code: Error code for programmatic handling
        details: Additional context information
        cause: Original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary format."""
        result = {
            "error": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }
        if self.cause:
            result["cause"] = str(self.cause)
        return result

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class ConfigurationError(TraffiqAnalyticsError):
    """Raised when configuration is invalid or missing."""

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        config_details = details or {}
        if config_key:
            config_details["config_key"] = config_key

        super().__init__(message, "CONFIGURATION_ERROR", config_details)
        self.config_key = config_key


class StorageError(TraffiqAnalyticsError):
    """Raised when a storage backend operation fails."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        key: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        storage_details = details or {}
        if operation:
            storage_details["operation"] = operation
        if key:
            storage_details["key"] = key

        super().__init__(message, "STORAGE_ERROR", storage_details, cause)
        self.operation = operation
        self.key = key


class QuotaExceededError(StorageError):
    """Raised when a write would exceed the storage quota."""

    def __init__(
        self,
        message: str,
        key: str | None = None,
        quota_bytes: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        quota_details = details or {}
        if quota_bytes is not None:
            quota_details["quota_bytes"] = quota_bytes

        super().__init__(message, "set_item", key, quota_details)
        self.quota_bytes = quota_bytes


class SerializationError(TraffiqAnalyticsError):
    """Raised when a persisted document cannot be encoded or decoded."""

    def __init__(
        self,
        message: str,
        key: str | None = None,
        format_name: str = "json",
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        serialization_details = details or {}
        if key:
            serialization_details["key"] = key
        serialization_details["format"] = format_name

        super().__init__(message, "SERIALIZATION_ERROR", serialization_details, cause)
        self.key = key
        self.format_name = format_name
