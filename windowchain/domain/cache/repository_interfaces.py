"""
Cache Storage Interfaces

Abstract persistence port for cache snapshots.
Implementations store one opaque string payload per named slot.
"""

from abc import ABC, abstractmethod
from typing import Optional


class CacheStorage(ABC):
    """
    Abstract durable key-value slot store.

    Used by persistent caches to save and reload their full entry set.
    All operations are asynchronous so network-backed stores fit the same
    contract as local ones.
    """

    @abstractmethod
    async def load(self, slot: str) -> Optional[str]:
        """Return the payload stored in slot, or None if the slot is empty."""
        pass

    @abstractmethod
    async def save(self, slot: str, payload: str) -> None:
        """Replace the payload stored in slot."""
        pass

    @abstractmethod
    async def delete(self, slot: str) -> bool:
        """Remove slot; returns True if something was removed."""
        pass

    async def close(self) -> None:
        """Release underlying resources."""
        return None
