"""
Cache Service

Namespaced result cache with time-based expiry, a pluggable eviction policy,
hit/miss statistics and best-effort persistence through a storage port.
"""

import asyncio
import inspect
import json
import time
import warnings
from typing import Any, Dict, Optional, Tuple

import structlog
from opentelemetry import trace

from ...core.exceptions import PersistenceWarning
from ...constants import PERSISTED_ITEMS_KEY, PERSISTED_META_KEY
from ...domain.cache.entities import CacheEntry
from ...domain.cache.eviction import get_eviction_policy
from ...domain.cache.repository_interfaces import CacheStorage
from ...domain.cache.timed_store import Clock, TimedStore
from ...domain.cache.value_objects import CacheOptions, CacheStats, storage_slot
from ...infrastructure.storage import create_storage

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)


class CacheService:
    """
    Bounded, expiring key/value cache.

    Construction is side-effect free. Persistent caches load their durable
    snapshot in ``initialize()``; until then they behave as empty caches.
    Safe for concurrent use from a single event loop, not thread-safe.
    """

    def __init__(
        self,
        options: Optional[CacheOptions] = None,
        storage: Optional[CacheStorage] = None,
        clock: Optional[Clock] = None,
    ):
        self.options = options or CacheOptions()
        self._owns_storage = self.options.persistent and storage is None
        if self._owns_storage:
            storage = create_storage()

        self._storage = storage
        self._store = TimedStore(clock or time.time)
        self._policy = get_eviction_policy(self.options.strategy)
        self._slot = storage_slot(self.options.namespace)
        self._hits = 0
        self._misses = 0
        self._initialized = False
        self._init_lock = asyncio.Lock()
        self._save_lock = asyncio.Lock()

    @property
    def namespace(self) -> str:
        return self.options.namespace

    @property
    def persistent(self) -> bool:
        return self.options.persistent

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Load persisted entries once. Repeated calls are no-ops."""
        async with self._init_lock:
            if self._initialized:
                return

            if self.persistent:
                with tracer.start_as_current_span("cache_service.initialize") as span:
                    span.set_attribute("cache.namespace", self.namespace)
                    loaded = await self._load()
                    span.set_attribute("cache.loaded_entries", loaded)

            self._initialized = True

    async def get(self, key: str, default: Any = None) -> Any:
        """
        Look up a key.

        Args:
            key: Cache key
            default: Returned on a miss or an expired entry

        Returns:
            Stored value or default
        """
        with tracer.start_as_current_span("cache_service.get") as span:
            span.set_attribute("cache.namespace", self.namespace)

            was_stored = key in self._store.entries()
            entry = self._store.get_entry(key)

            if entry is None:
                self._misses += 1
                span.set_attribute("cache.hit", False)
                if was_stored:
                    logger.debug("cache_entry_expired", namespace=self.namespace, key=key)
                    await self._persist()
                return default

            entry.access(self._store.now(), self._store.next_order())
            self._hits += 1
            span.set_attribute("cache.hit", True)
            return entry.value

    async def set(self, key: str, value: Any) -> None:
        """
        Store a value, evicting one entry first when a new key meets a full cache.

        Args:
            key: Cache key
            value: Value to store
        """
        with tracer.start_as_current_span("cache_service.set") as span:
            span.set_attribute("cache.namespace", self.namespace)

            # Evict and insert without yielding so concurrent sets never overfill
            evicted = None
            is_new_key = key not in self._store.entries()
            if is_new_key and self._store.size() >= self.options.max_size:
                evicted = self._evict_one()

            self._store.set(key, value, self.options.ttl)

            if evicted is not None:
                await self._notify_evicted(*evicted)
            await self._persist()

    async def has(self, key: str) -> bool:
        """True iff key is present and unexpired. Touches no metadata or counters."""
        return self._store.contains(key)

    async def delete(self, key: str) -> bool:
        """Remove a key. Returns whether it was stored."""
        removed = self._store.delete(key)
        if removed:
            await self._persist()
        return removed

    async def clear(self) -> None:
        """Remove every entry. Hit/miss counters are kept."""
        self._store.clear()
        logger.info("cache_cleared", namespace=self.namespace)
        await self._persist()

    async def purge_expired(self) -> int:
        """Drop every expired entry now instead of waiting for lookups."""
        removed = self._store.purge_expired()
        if removed:
            logger.debug("cache_expired_purged", namespace=self.namespace, removed=removed)
            await self._persist()
        return removed

    def reset_stats(self) -> None:
        """Zero the hit/miss counters."""
        self._hits = 0
        self._misses = 0

    def stats(self) -> CacheStats:
        """Current occupancy and hit/miss figures."""
        created = [entry.created_at for entry in self._store.entries().values()]
        return CacheStats(
            size=self._store.size(),
            capacity=self.options.max_size,
            hits=self._hits,
            misses=self._misses,
            hit_rate=CacheStats.compute_hit_rate(self._hits, self._misses),
            oldest_entry=min(created) if created else None,
            newest_entry=max(created) if created else None,
        )

    def __len__(self) -> int:
        return self._store.size()

    async def close(self) -> None:
        """Close storage this cache created for itself. Injected storage is left open."""
        if self._owns_storage and self._storage is not None:
            await self._storage.close()
            logger.debug("cache_storage_closed", namespace=self.namespace)

    # Eviction

    def _evict_one(self) -> Optional[Tuple[str, Any]]:
        victim = self._policy.select_victim(self._store.entries())
        if victim is None:
            return None

        entry = self._store.entries()[victim]
        self._store.delete(victim)
        logger.debug(
            "cache_entry_evicted",
            namespace=self.namespace,
            key=victim,
            strategy=self.options.strategy.value,
        )
        return victim, entry.value

    async def _notify_evicted(self, key: str, value: Any) -> None:
        callback = self.options.on_evict
        if callback is None:
            return

        try:
            result = callback(key, value)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(
                "cache_evict_callback_failed",
                namespace=self.namespace,
                key=key,
                error=str(e),
            )

    # Persistence

    def _snapshot(self) -> str:
        items: Dict[str, Any] = {}
        meta: Dict[str, Any] = {}
        for key, entry in self._store.entries().items():
            items[key] = {"value": entry.value}
            meta[key] = entry.metadata()
        return json.dumps({PERSISTED_ITEMS_KEY: items, PERSISTED_META_KEY: meta})

    async def _persist(self) -> None:
        if not self.persistent:
            return

        # Snapshot before awaiting so saves land in mutation order
        try:
            payload = self._snapshot()
        except (TypeError, ValueError) as e:
            self._warn("Failed to serialize cache", e)
            return

        async with self._save_lock:
            try:
                await self._storage.save(self._slot, payload)
            except Exception as e:
                self._warn("Failed to persist cache", e)

    async def _load(self) -> int:
        try:
            raw = await self._storage.load(self._slot)
        except Exception as e:
            self._warn("Failed to load persistent cache", e)
            return 0

        if not raw:
            return 0

        try:
            data = json.loads(raw)
            items = data[PERSISTED_ITEMS_KEY]
            meta = data[PERSISTED_META_KEY]
            restored = [
                (key, CacheEntry.from_persisted(item["value"], meta[key]))
                for key, item in items.items()
            ]
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            self._warn("Failed to load persistent cache", e)
            return 0

        for key, entry in sorted(restored, key=lambda kv: kv[1].insertion_order):
            self._store.restore(key, entry)

        overflow = self._store.size() - self.options.max_size
        evicted = [self._evict_one() for _ in range(max(overflow, 0))]
        for victim in evicted:
            if victim is not None:
                await self._notify_evicted(*victim)
        if overflow > 0:
            await self._persist()

        logger.info(
            "cache_loaded",
            namespace=self.namespace,
            entries=self._store.size(),
            slot=self._slot,
        )
        return self._store.size()

    def _warn(self, message: str, error: Exception) -> None:
        logger.warning(
            "cache_persistence_failed",
            namespace=self.namespace,
            slot=self._slot,
            reason=message,
            error=str(error),
        )
        warnings.warn(f"{message}: {error}", PersistenceWarning, stacklevel=3)


async def create_cache(
    options: Optional[CacheOptions] = None,
    storage: Optional[CacheStorage] = None,
    clock: Optional[Clock] = None,
) -> CacheService:
    """Create a cache service and load its persisted state."""
    service = CacheService(options, storage=storage, clock=clock)
    await service.initialize()
    return service
