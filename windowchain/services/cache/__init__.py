"""
Cache Services

Namespaced expiring result cache.
"""

from .cache_service import CacheService, create_cache

__all__ = ["CacheService", "create_cache"]
