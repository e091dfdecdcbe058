"""
Redis Cache Storage

Stores each slot as a plain Redis string key.
The client is injected; ``from_url`` builds one from settings.
"""

import logging
from typing import Optional

from redis.asyncio import Redis

from ...domain.cache.repository_interfaces import CacheStorage

logger = logging.getLogger(__name__)


class RedisStorage(CacheStorage):
    """Redis-backed storage slots."""

    def __init__(self, redis: Redis, owns_client: bool = False):
        """
        Initialize Redis storage.

        Args:
            redis: Async Redis client (REQUIRED)
            owns_client: Close the client when this storage is closed
        """
        if redis is None:
            raise ValueError("redis client is required")

        self._redis = redis
        self._owns_client = owns_client

    @classmethod
    def from_url(cls, url: str) -> "RedisStorage":
        """Create storage with its own client from a connection URL."""
        return cls(Redis.from_url(url), owns_client=True)

    async def load(self, slot: str) -> Optional[str]:
        raw = await self._redis.get(slot)
        if raw is None:
            return None
        if isinstance(raw, bytes):
            return raw.decode("utf-8")
        return raw

    async def save(self, slot: str, payload: str) -> None:
        await self._redis.set(slot, payload)
        logger.debug(f"Saved cache slot {slot} to redis")

    async def delete(self, slot: str) -> bool:
        removed = await self._redis.delete(slot)
        return bool(removed)

    async def close(self) -> None:
        if self._owns_client:
            await self._redis.aclose()
            logger.info("Redis storage client closed")
