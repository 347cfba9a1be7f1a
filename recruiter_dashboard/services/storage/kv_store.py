"""
Key-value persistence for local dashboard state.

Two backends share one small async interface:
- JsonFileStore: a single JSON document on disk (default, single process)
- RedisStore: pooled redis.asyncio client (shared by web and worker processes)

Unlike a cache, a failed read or write here must surface to the caller:
silently returning "no data" would let the queue overwrite itself with an
empty document. Every backend failure is raised as StorageError.
"""

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Protocol

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from recruiter_dashboard.config import Settings
from recruiter_dashboard.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class StorageError(Exception):
    """Raised when the persistence backend cannot be read or written."""

    def __init__(self, message: str, operation: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class KeyValueStore(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> bool: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


class JsonFileStore:
    """Stores all keys in one JSON object, rewritten atomically on every set."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        if not isinstance(data, dict):
            raise ValueError(f"Storage file {self.path} does not hold a JSON object")
        return data

    def _write_all(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except Exception:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    async def get(self, key: str) -> str | None:
        try:
            async with self._lock:
                data = await asyncio.to_thread(self._read_all)
            return data.get(key)
        except Exception as e:
            logger.error("Storage GET failed", key=key, path=str(self.path), error=str(e))
            raise StorageError(f"Failed to read {key}: {e}", operation="get") from e

    async def set(self, key: str, value: str) -> None:
        try:
            async with self._lock:
                data = await asyncio.to_thread(self._read_all)
                data[key] = value
                await asyncio.to_thread(self._write_all, data)
        except Exception as e:
            logger.error("Storage SET failed", key=key, path=str(self.path), error=str(e))
            raise StorageError(f"Failed to write {key}: {e}", operation="set") from e

    async def delete(self, key: str) -> bool:
        try:
            async with self._lock:
                data = await asyncio.to_thread(self._read_all)
                if key not in data:
                    return False
                del data[key]
                await asyncio.to_thread(self._write_all, data)
                return True
        except Exception as e:
            logger.error("Storage DELETE failed", key=key, path=str(self.path), error=str(e))
            raise StorageError(f"Failed to delete {key}: {e}", operation="delete") from e

    async def ping(self) -> bool:
        try:
            await asyncio.to_thread(self._read_all)
            return True
        except Exception as e:
            logger.error("Storage ping failed", path=str(self.path), error=str(e))
            return False

    async def close(self) -> None:
        return None


class RedisStore:
    """Redis-backed store with connection pooling, initialized lazily."""

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self.pool = None
        self.client = None
        self._initialized = False

    async def initialize(self):
        """Initialize connection pool on first use"""
        if self._initialized:
            return

        try:
            self.pool = ConnectionPool.from_url(
                self.redis_url,
                max_connections=20,
                retry_on_timeout=True,
                socket_connect_timeout=10,
                socket_timeout=10,
                health_check_interval=30,
                decode_responses=True,
            )
            self.client = redis.Redis(connection_pool=self.pool)

            await self.client.ping()
            self._initialized = True
            logger.info("Redis store initialized", max_connections=20)

        except Exception as e:
            logger.error("Failed to initialize Redis store", error=str(e))
            self._initialized = False
            raise StorageError("Redis initialization failed", operation="initialize") from e

    async def close(self) -> None:
        """Clean shutdown"""
        try:
            if self.client:
                await self.client.aclose()
            if self.pool:
                await self.pool.disconnect()
            self._initialized = False
            logger.info("Redis store closed")
        except Exception as e:
            logger.error("Error closing Redis store", error=str(e))

    async def ping(self) -> bool:
        try:
            await self.initialize()
            return bool(await self.client.ping())
        except Exception as e:
            logger.error("Redis ping failed", error=str(e))
            return False

    async def get(self, key: str) -> str | None:
        await self.initialize()
        try:
            result = await self.client.get(key)
            return result if result else None
        except Exception as e:
            logger.error("Redis GET failed", key=key, error=str(e))
            raise StorageError(f"Failed to read {key}: {e}", operation="get") from e

    async def set(self, key: str, value: str) -> None:
        await self.initialize()
        try:
            await self.client.set(key, value)
        except Exception as e:
            logger.error("Redis SET failed", key=key, error=str(e))
            raise StorageError(f"Failed to write {key}: {e}", operation="set") from e

    async def delete(self, key: str) -> bool:
        await self.initialize()
        try:
            result = await self.client.delete(key)
            return result > 0
        except Exception as e:
            logger.error("Redis DELETE failed", key=key, error=str(e))
            raise StorageError(f"Failed to delete {key}: {e}", operation="delete") from e


def build_kv_store(config: Settings) -> KeyValueStore:
    """Create the backend selected by STORAGE_BACKEND."""
    backend = config.STORAGE_BACKEND.strip().lower()
    if backend == "redis":
        if not config.REDIS_URL:
            raise ValueError("REDIS_URL must be set when STORAGE_BACKEND=redis")
        return RedisStore(config.REDIS_URL)
    if backend == "file":
        return JsonFileStore(config.storage_path())
    raise ValueError(f"Unknown storage backend '{config.STORAGE_BACKEND}'. Available: file, redis")
