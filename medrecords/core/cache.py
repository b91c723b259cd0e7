# medrecords/core/cache.py
"""
Device-local key/value cache.

Contract: get(key) -> bytes | None, set(key, bytes), remove(key).
Writes are last-writer-wins; nothing here locks.
"""

from abc import ABC, abstractmethod
from typing import Optional

import redis

from medrecords.core.errors import BackendUnavailable
from medrecords.core.redis import get_redis_client


class LocalCache(ABC):
    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        ...

    @abstractmethod
    def set(self, key: str, value: bytes) -> None:
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        ...


class MemoryCache(LocalCache):
    """Process-local cache, used when Redis is not configured."""

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}

    def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class RedisCache(LocalCache):
    """Redis-backed cache. Keys never expire: this is a store, not a TTL cache."""

    def __init__(self, client: redis.Redis):
        self._client = client

    def get(self, key: str) -> Optional[bytes]:
        try:
            return self._client.get(key)
        except redis.RedisError as e:
            raise BackendUnavailable(f"Redis GET error for key '{key}': {e}") from e

    def set(self, key: str, value: bytes) -> None:
        try:
            self._client.set(key, value)
        except redis.RedisError as e:
            raise BackendUnavailable(f"Redis SET error for key '{key}': {e}") from e

    def remove(self, key: str) -> None:
        try:
            self._client.delete(key)
        except redis.RedisError as e:
            raise BackendUnavailable(f"Redis DELETE error for key '{key}': {e}") from e


def get_local_cache() -> LocalCache:
    """
    Redis-backed cache when Redis is reachable, in-memory cache otherwise.
    """
    client = get_redis_client()
    if client is None:
        return MemoryCache()
    return RedisCache(client)
