"""Key-value storage backends for TraffiQ Analytics."""

from .base import StorageBackend, StorageEvent, StorageListener
from .factory import create_storage_backend
from .file import FileStorage
from .memory import MemoryArea, MemoryStorage
from .redis_backend import RedisStorage

__all__ = [
    "StorageBackend",
    "StorageEvent",
    "StorageListener",
    "create_storage_backend",
    "FileStorage",
    "MemoryArea",
    "MemoryStorage",
    "RedisStorage",
]
