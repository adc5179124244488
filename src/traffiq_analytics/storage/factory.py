"""Storage backend factory.

Selects and configures the key-value backend named in settings.
"""

from ..core.config import Settings
from ..core.exceptions import ConfigurationError, StorageError
from ..core.logging import get_logger
from .base import StorageBackend
from .file import FileStorage
from .memory import MemoryArea, MemoryStorage
from .redis_backend import RedisStorage

logger = get_logger(__name__)


def create_storage_backend(
    settings: Settings, area: MemoryArea | None = None
) -> StorageBackend:
    """Create a storage handle for the configured backend.

    Args:
        settings: Application settings
        area: Shared area to attach to when the backend is ``memory``

    Returns:
        Configured storage backend

    Raises:
        ConfigurationError: If the backend is unknown or cannot be created
    """
    config = settings.storage
    try:
        if config.backend == "memory":
            backend: StorageBackend = MemoryStorage(
                area or MemoryArea(quota_bytes=config.quota_bytes)
            )
        elif config.backend == "file":
            backend = FileStorage(config.data_dir)
        elif config.backend == "redis":
            backend = RedisStorage(url=config.redis_url, channel=config.channel)
        else:
            raise ConfigurationError(
                f"Unknown storage backend: {config.backend}",
                config_key="storage.backend",
            )
    except StorageError as e:
        raise ConfigurationError(
            f"Failed to create storage backend: {e}", config_key="storage"
        ) from e

    logger.info("Storage backend created", backend=config.backend)
    return backend
