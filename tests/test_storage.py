from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from systems.khulark.core.storage import (
    FileStateStorage,
    InMemoryStateStorage,
    RedisStateStorage,
    StateStorageError,
    get_state_storage,
)


@pytest.mark.asyncio
async def test_file_storage_round_trip(tmp_path):
    storage = FileStateStorage(tmp_path / "nested" / "save.json")
    await storage.initialize()

    assert await storage.read() is None
    await storage.write('{"version": 1}')
    assert await storage.read() == '{"version": 1}'
    assert not (tmp_path / "nested" / "save.json.tmp").exists()

    await storage.delete()
    assert await storage.read() is None
    await storage.delete()  # already gone


@pytest.mark.asyncio
async def test_file_storage_write_failure_raises_storage_error(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")
    storage = FileStateStorage(blocker / "save.json")

    with pytest.raises(StateStorageError):
        await storage.write("{}")


@pytest.mark.asyncio
async def test_in_memory_storage():
    storage = InMemoryStateStorage("seed")
    assert await storage.read() == "seed"
    await storage.delete()
    assert await storage.read() is None


@pytest.mark.asyncio
async def test_redis_storage_uses_single_key():
    fake = AsyncMock()
    fake.get.return_value = '{"version": 1}'
    with patch("systems.khulark.core.storage.aioredis.from_url", return_value=fake) as from_url:
        storage = RedisStateStorage("redis://example:6379/0", "khulark-save")
        assert await storage.read() == '{"version": 1}'
        await storage.write("{}")
        await storage.close()

    from_url.assert_called_once()
    fake.get.assert_awaited_once_with("khulark-save")
    fake.set.assert_awaited_once_with("khulark-save", "{}")
    fake.aclose.assert_awaited_once()


@pytest.mark.asyncio
async def test_redis_errors_become_storage_errors():
    fake = AsyncMock()
    fake.set.side_effect = RedisConnectionError("down")
    with patch("systems.khulark.core.storage.aioredis.from_url", return_value=fake):
        storage = RedisStateStorage("redis://example:6379/0", "khulark-save")
        with pytest.raises(StateStorageError):
            await storage.write("{}")


def test_factory_selects_backend(test_settings):
    assert isinstance(get_state_storage(test_settings), InMemoryStateStorage)

    as_file = get_state_storage(test_settings.model_copy(update={"storage_backend": "file"}))
    assert isinstance(as_file, FileStateStorage)
    assert str(as_file.path) == test_settings.save_path

    as_redis = get_state_storage(test_settings.model_copy(update={"storage_backend": "redis"}))
    assert isinstance(as_redis, RedisStateStorage)
