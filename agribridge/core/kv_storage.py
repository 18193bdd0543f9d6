"""
Key-value persistence for client-local state (carts).

The contract is three synchronous operations on string keys and string
values: get, set, remove. Values are serialized JSON produced by the caller.

Backends:
- InMemoryStorage: process-local dict (tests, single-worker dev)
- JsonFileStorage: one JSON document on disk holding every key
- RedisStorage: shared across workers, uses the REDIS_URL connection

Concurrent writers under the same key are last-write-wins.
"""
import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional, Protocol, runtime_checkable

import redis

from agribridge.core.config import settings

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStorage(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class InMemoryStorage:
    """Dict-backed storage."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class JsonFileStorage:
    """
    Storage backed by a single JSON file.

    The whole document is re-read on every get so separate processes see
    each other's writes. Writes go through a temp file and os.replace.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Unreadable storage file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Storage file {self.path} is not an object, ignoring")
            return {}
        return data

    def _write_all(self, data: Dict[str, str]) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self.path)

    def get(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def remove(self, key: str) -> None:
        data = self._read_all()
        if data.pop(key, None) is not None:
            self._write_all(data)


class RedisStorage:
    """Redis-backed storage; keys are stored verbatim under an optional namespace."""

    def __init__(self, client: redis.Redis, namespace: str = ""):
        self._client = client
        self.namespace = namespace

    @classmethod
    def from_url(cls, url: str, namespace: str = "") -> "RedisStorage":
        client = redis.Redis.from_url(url, encoding="utf-8", decode_responses=True)
        return cls(client, namespace=namespace)

    def _key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    def get(self, key: str) -> Optional[str]:
        value = self._client.get(self._key(key))
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    def set(self, key: str, value: str) -> None:
        self._client.set(self._key(key), value)

    def remove(self, key: str) -> None:
        self._client.delete(self._key(key))

    def close(self) -> None:
        self._client.close()


def create_storage(backend: Optional[str] = None) -> KeyValueStorage:
    """Build the configured storage backend.

    Falls back to in-memory storage when redis is selected but REDIS_URL is
    empty or unreachable (graceful degradation).
    """
    backend = backend or settings.CART_STORAGE_BACKEND

    if backend == "file":
        logger.info(f"Cart storage: file at {settings.CART_STORAGE_PATH}")
        return JsonFileStorage(settings.CART_STORAGE_PATH)

    if backend == "redis":
        if not settings.REDIS_URL:
            logger.warning("CART_STORAGE_BACKEND=redis but REDIS_URL not set. Falling back to in-memory.")
            return InMemoryStorage()
        try:
            storage = RedisStorage.from_url(settings.REDIS_URL)
            storage._client.ping()
            logger.info("Cart storage: Redis connection established")
            return storage
        except redis.RedisError as e:
            logger.warning(f"Redis connection failed: {e}. Falling back to in-memory.")
            return InMemoryStorage()

    logger.info("Cart storage: in-memory")
    return InMemoryStorage()
