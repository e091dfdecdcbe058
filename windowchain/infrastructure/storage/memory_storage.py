"""
In-Memory Cache Storage

Process-local storage adapter. Useful for tests and for sharing one
persisted snapshot between cache instances inside a single process.
"""

from typing import Dict, Optional

from ...domain.cache.repository_interfaces import CacheStorage


class InMemoryStorage(CacheStorage):
    """Dictionary-backed storage slots."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._slots: Dict[str, str] = dict(initial or {})

    async def load(self, slot: str) -> Optional[str]:
        return self._slots.get(slot)

    async def save(self, slot: str, payload: str) -> None:
        self._slots[slot] = payload

    async def delete(self, slot: str) -> bool:
        return self._slots.pop(slot, None) is not None

    def __contains__(self, slot: str) -> bool:
        return slot in self._slots
