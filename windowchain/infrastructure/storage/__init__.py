"""
Cache Storage Adapters

Implementations of the CacheStorage port and a settings-driven factory.
"""

from typing import Optional

from ...core.config import Settings, get_settings
from ...domain.cache.repository_interfaces import CacheStorage
from .file_storage import FileStorage
from .memory_storage import InMemoryStorage
from .redis_storage import RedisStorage


def create_storage(settings: Optional[Settings] = None) -> CacheStorage:
    """
    Create the storage adapter selected by CACHE_STORAGE_BACKEND.

    Raises:
        ValueError: If the redis backend is selected without REDIS_URL
    """
    settings = settings or get_settings()
    backend = settings.CACHE_STORAGE_BACKEND

    if backend == "memory":
        return InMemoryStorage()
    if backend == "redis":
        if not settings.REDIS_URL:
            raise ValueError("REDIS_URL is required for the redis storage backend")
        return RedisStorage.from_url(settings.REDIS_URL)
    return FileStorage(settings.CACHE_STORAGE_DIRECTORY)


__all__ = [
    "CacheStorage",
    "FileStorage",
    "InMemoryStorage",
    "RedisStorage",
    "create_storage",
]
