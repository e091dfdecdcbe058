"""
Eviction Policies

Strategies selecting which entry leaves a full cache.
Each policy picks exactly one victim and is deterministic: ties on the
primary metric fall back to the store-assigned ordinals.
"""

from abc import ABC, abstractmethod
from typing import Dict, Mapping, Optional, Tuple, Type

from .entities import CacheEntry
from .value_objects import EvictionStrategy


class EvictionPolicy(ABC):
    """Abstract base class for eviction policies."""

    strategy: EvictionStrategy

    def select_victim(self, entries: Mapping[str, CacheEntry]) -> Optional[str]:
        """
        Select the key to evict.

        Args:
            entries: All stored entries with their metadata

        Returns:
            Key of the victim, or None for an empty mapping
        """
        if not entries:
            return None
        return min(entries, key=lambda k: self.rank(entries[k]))

    @abstractmethod
    def rank(self, entry: CacheEntry) -> Tuple[float, ...]:
        """Sort key; the smallest rank is evicted first."""
        pass


class LRUPolicy(EvictionPolicy):
    """Evict least recently used."""

    strategy = EvictionStrategy.LRU

    def rank(self, entry: CacheEntry) -> Tuple[float, ...]:
        return (entry.last_accessed_at, entry.access_order)


class LFUPolicy(EvictionPolicy):
    """Evict least frequently used."""

    strategy = EvictionStrategy.LFU

    def rank(self, entry: CacheEntry) -> Tuple[float, ...]:
        return (entry.hit_count, entry.insertion_order)


class FIFOPolicy(EvictionPolicy):
    """Evict oldest entry."""

    strategy = EvictionStrategy.FIFO

    def rank(self, entry: CacheEntry) -> Tuple[float, ...]:
        return (entry.created_at, entry.insertion_order)


class ArbitraryPolicy(EvictionPolicy):
    """Evict the first key in insertion order."""

    strategy = EvictionStrategy.ARBITRARY

    def select_victim(self, entries: Mapping[str, CacheEntry]) -> Optional[str]:
        return next(iter(entries), None)

    def rank(self, entry: CacheEntry) -> Tuple[float, ...]:
        return (entry.insertion_order,)


_POLICIES: Dict[EvictionStrategy, Type[EvictionPolicy]] = {
    EvictionStrategy.LRU: LRUPolicy,
    EvictionStrategy.LFU: LFUPolicy,
    EvictionStrategy.FIFO: FIFOPolicy,
    EvictionStrategy.ARBITRARY: ArbitraryPolicy,
}


def get_eviction_policy(strategy: EvictionStrategy) -> EvictionPolicy:
    """Create the policy for a strategy (accepts enum or its string value)."""
    return _POLICIES[EvictionStrategy(strategy)]()
