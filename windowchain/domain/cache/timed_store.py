"""
Timed Store

Key/value map where every entry carries an expiry timestamp.
Expiry is enforced lazily: an expired entry is removed by the lookup that
finds it, never by a background sweep.
"""

import itertools
import time
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional

from .entities import CacheEntry

Clock = Callable[[], float]


class TimedStore:
    """
    Expiring key/value store used as the backing map of a cache.

    Not thread-safe; intended for use from a single event loop.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self._clock: Clock = clock or time.time
        self._entries: Dict[str, CacheEntry] = {}
        self._sequence = itertools.count(1)

    def now(self) -> float:
        """Current reading of the store clock."""
        return self._clock()

    def next_order(self) -> int:
        """Hand out the next ordinal for insertion/access ordering."""
        return next(self._sequence)

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry for key, deleting it if expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None

        return entry

    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value or default when absent or expired."""
        entry = self.get_entry(key)
        if entry is None:
            return default
        return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float) -> CacheEntry:
        """
        Store value under key, replacing any previous entry wholesale.

        Args:
            key: Cache key
            value: Value to store
            ttl_seconds: Time to live in seconds

        Returns:
            The newly created entry
        """
        if ttl_seconds <= 0:
            raise ValueError("TTL must be positive")

        # Replacement moves the key to the end of insertion order
        self._entries.pop(key, None)
        entry = CacheEntry.create(value, self._clock(), ttl_seconds, self.next_order())
        self._entries[key] = entry
        return entry

    def restore(self, key: str, entry: CacheEntry) -> None:
        """Insert a previously persisted entry as-is."""
        self._entries[key] = entry
        highest = max(entry.insertion_order, entry.access_order)
        current = next(self._sequence)
        self._sequence = itertools.count(max(current, highest + 1))

    def delete(self, key: str) -> bool:
        """Delete entry from store."""
        return self._entries.pop(key, None) is not None

    def contains(self, key: str) -> bool:
        """True iff key is present and unexpired; never deletes."""
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def size(self) -> int:
        """Number of stored entries, expired-but-unvisited ones included."""
        return len(self._entries)

    def entries(self) -> Mapping[str, CacheEntry]:
        """Read-only view of all stored entries in insertion order."""
        return MappingProxyType(self._entries)

    def clear(self) -> None:
        """Clear all entries from store."""
        self._entries.clear()

    def purge_expired(self) -> int:
        """Remove all expired entries, returns count of removed entries."""
        now = self._clock()
        expired_keys = [k for k, v in self._entries.items() if v.is_expired(now)]
        for k in expired_keys:
            del self._entries[k]
        return len(expired_keys)

    def __len__(self) -> int:
        return len(self._entries)
