"""
Cache Domain Module

Entities, value objects, the timed store, eviction policies and the
storage port used by the cache service.
"""

from .entities import CacheEntry
from .eviction import (
    ArbitraryPolicy,
    EvictionPolicy,
    FIFOPolicy,
    LFUPolicy,
    LRUPolicy,
    get_eviction_policy,
)
from .repository_interfaces import CacheStorage
from .timed_store import TimedStore
from .value_objects import (
    TTL,
    CacheOptions,
    CacheStats,
    EvictionStrategy,
    storage_slot,
)

__all__ = [
    "CacheEntry",
    "CacheOptions",
    "CacheStats",
    "CacheStorage",
    "EvictionPolicy",
    "EvictionStrategy",
    "LRUPolicy",
    "LFUPolicy",
    "FIFOPolicy",
    "ArbitraryPolicy",
    "TTL",
    "TimedStore",
    "get_eviction_policy",
    "storage_slot",
]
