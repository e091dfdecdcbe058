"""
Unit tests for cache storage adapters.
"""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from windowchain.core.config import Settings
from windowchain.infrastructure.storage import (
    FileStorage,
    InMemoryStorage,
    RedisStorage,
    create_storage,
)


class TestInMemoryStorage:
    @pytest.mark.asyncio
    async def test_save_load_delete(self, memory_storage):
        await memory_storage.save("slot", "payload")

        assert await memory_storage.load("slot") == "payload"
        assert "slot" in memory_storage
        assert await memory_storage.delete("slot") is True
        assert await memory_storage.delete("slot") is False
        assert await memory_storage.load("slot") is None


class TestFileStorage:
    @pytest_asyncio.fixture
    async def storage(self, tmp_path):
        return FileStorage(tmp_path / "cache")

    @pytest.mark.asyncio
    async def test_missing_slot(self, storage):
        assert await storage.load("nothing") is None

    @pytest.mark.asyncio
    async def test_round_trip(self, storage):
        await storage.save("windowchain_cache_default", '{"items": {}}')
        await storage.save("windowchain_cache_default", '{"items": {"a": 1}}')

        assert await storage.load("windowchain_cache_default") == '{"items": {"a": 1}}'
        assert (storage.directory / "windowchain_cache_default.json").exists()
        assert not list(storage.directory.glob("*.tmp"))

    @pytest.mark.asyncio
    async def test_unsafe_slot_names_stay_in_directory(self, storage):
        await storage.save("../escape/slot", "x")

        files = [p.name for p in storage.directory.iterdir()]
        assert files == [".._escape_slot.json"]

    @pytest.mark.asyncio
    async def test_delete(self, storage):
        await storage.save("slot", "x")

        assert await storage.delete("slot") is True
        assert await storage.delete("slot") is False


class TestRedisStorage:
    @pytest.fixture
    def mock_redis(self):
        redis = AsyncMock()
        redis.get = AsyncMock(return_value=b'{"items": {}}')
        redis.set = AsyncMock(return_value=True)
        redis.delete = AsyncMock(return_value=1)
        redis.aclose = AsyncMock()
        return redis

    def test_requires_client(self):
        with pytest.raises(ValueError, match="redis client is required"):
            RedisStorage(None)

    @pytest.mark.asyncio
    async def test_load_decodes_bytes(self, mock_redis):
        storage = RedisStorage(mock_redis)

        assert await storage.load("slot") == '{"items": {}}'
        mock_redis.get.assert_awaited_once_with("slot")

    @pytest.mark.asyncio
    async def test_load_missing(self, mock_redis):
        mock_redis.get.return_value = None

        assert await RedisStorage(mock_redis).load("slot") is None

    @pytest.mark.asyncio
    async def test_save_and_delete(self, mock_redis):
        storage = RedisStorage(mock_redis)

        await storage.save("slot", "payload")
        assert await storage.delete("slot") is True

        mock_redis.set.assert_awaited_once_with("slot", "payload")
        mock_redis.delete.assert_awaited_once_with("slot")

    @pytest.mark.asyncio
    async def test_close_only_owned_client(self, mock_redis):
        await RedisStorage(mock_redis).close()
        mock_redis.aclose.assert_not_awaited()

        await RedisStorage(mock_redis, owns_client=True).close()
        mock_redis.aclose.assert_awaited_once()


class TestCreateStorage:
    def test_memory_backend(self):
        assert isinstance(create_storage(Settings(CACHE_STORAGE_BACKEND="memory")), InMemoryStorage)

    def test_file_backend(self, tmp_path):
        storage = create_storage(
            Settings(CACHE_STORAGE_BACKEND="file", CACHE_STORAGE_DIRECTORY=str(tmp_path))
        )

        assert isinstance(storage, FileStorage)
        assert storage.directory == tmp_path

    def test_redis_backend_requires_url(self):
        with pytest.raises(ValueError, match="REDIS_URL"):
            create_storage(Settings(CACHE_STORAGE_BACKEND="redis", REDIS_URL=None))

    def test_redis_backend(self):
        storage = create_storage(
            Settings(CACHE_STORAGE_BACKEND="redis", REDIS_URL="redis://localhost:6379/0")
        )

        assert isinstance(storage, RedisStorage)
