# systems/khulark/core/storage.py

from __future__ import annotations

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from core.config import KhularkSettings, settings as default_settings

logger = logging.getLogger(__name__)


class StateStorageError(RuntimeError):
    """A backend could not read or write the save document."""


# --- Abstract Interface ---
class AbstractStateStorage(ABC):
    """Single-key, string-valued store holding the whole save document."""

    @abstractmethod
    async def initialize(self): ...
    @abstractmethod
    async def close(self): ...
    @abstractmethod
    async def read(self) -> str | None: ...
    @abstractmethod
    async def write(self, data: str) -> None: ...
    @abstractmethod
    async def delete(self) -> None: ...


# --- Local JSON file (default; plays the role of the browser's localStorage) ---
class FileStateStorage(AbstractStateStorage):
    def __init__(self, path: str | Path):
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    async def initialize(self):
        logger.info("[StateStorage] Using save file at %s", self._path)

    async def close(self):
        pass

    async def read(self) -> str | None:
        return await asyncio.to_thread(self._read_sync)

    async def write(self, data: str) -> None:
        await asyncio.to_thread(self._write_sync, data)

    async def delete(self) -> None:
        try:
            await asyncio.to_thread(self._path.unlink, True)
        except OSError as e:
            raise StateStorageError(f"Could not delete {self._path}: {e}") from e

    def _read_sync(self) -> str | None:
        try:
            return self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StateStorageError(f"Could not read {self._path}: {e}") from e

    def _write_sync(self, data: str) -> None:
        # Write-then-rename so a crash mid-write never leaves a torn save.
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(data, encoding="utf-8")
            os.replace(tmp, self._path)
        except OSError as e:
            raise StateStorageError(f"Could not write {self._path}: {e}") from e


# --- Redis (shared box / multi-process dev setups) ---
class RedisStateStorage(AbstractStateStorage):
    def __init__(self, url: str, key: str):
        self._url = url
        self._key = key
        self._redis: aioredis.Redis | None = None

    async def initialize(self):
        logger.info(f"Initializing Redis state storage connection to {self._url}...")
        self._redis = aioredis.from_url(self._url, encoding="utf-8", decode_responses=True)

    async def close(self):
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            logger.info("Redis connection closed.")

    async def _client(self) -> aioredis.Redis:
        if self._redis is None:
            await self.initialize()
        return self._redis  # type: ignore[return-value]

    async def read(self) -> str | None:
        try:
            return await (await self._client()).get(self._key)
        except RedisError as e:
            raise StateStorageError(f"Redis read failed: {e!r}") from e

    async def write(self, data: str) -> None:
        try:
            await (await self._client()).set(self._key, data)
        except RedisError as e:
            raise StateStorageError(f"Redis write failed: {e!r}") from e

    async def delete(self) -> None:
        try:
            await (await self._client()).delete(self._key)
        except RedisError as e:
            raise StateStorageError(f"Redis delete failed: {e!r}") from e


# --- Developer-Friendly In-Memory Fallback ---
class InMemoryStateStorage(AbstractStateStorage):
    """Process-local; state is gone when the process exits."""

    def __init__(self, initial: str | None = None):
        self._data = initial

    async def initialize(self):
        logger.warning("Using IN-MEMORY state storage. Nothing will survive a restart.")

    async def close(self):
        pass

    async def read(self) -> str | None:
        return self._data

    async def write(self, data: str) -> None:
        self._data = data

    async def delete(self) -> None:
        self._data = None


def get_state_storage(cfg: KhularkSettings | None = None) -> AbstractStateStorage:
    cfg = cfg or default_settings
    if cfg.storage_backend == "redis":
        return RedisStateStorage(cfg.redis_url, cfg.save_key)
    if cfg.storage_backend == "memory":
        return InMemoryStateStorage()
    return FileStateStorage(cfg.save_path)
