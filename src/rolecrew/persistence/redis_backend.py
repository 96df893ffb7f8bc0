"""Redis cache backend implementing ICacheBackend."""

from __future__ import annotations

import asyncio

import redis

from rolecrew.core.exceptions import CacheError


class RedisCacheBackend:
    """Production ICacheBackend backed by Redis.

    Every key is namespaced with ``prefix`` so several deployments can share
    one Redis database. The blocking redis-py calls run in a worker thread.
    """

    def __init__(self, host: str = "localhost", port: int = 6379, db: int = 0,
                 prefix: str = "rolecrew:") -> None:
        self._prefix = prefix
        self._client = redis.Redis(
            host=host, port=port, db=db, decode_responses=True,
        )

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> str | None:
        try:
            return await asyncio.to_thread(self._client.get, self._key(key))
        except redis.RedisError as exc:
            raise CacheError(f"Redis GET failed for key={key!r}: {exc}") from exc

    async def setex(self, key: str, ttl: int, value: str) -> None:
        try:
            await asyncio.to_thread(self._client.setex, self._key(key), ttl, value)
        except redis.RedisError as exc:
            raise CacheError(f"Redis SETEX failed for key={key!r}: {exc}") from exc

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._client.delete, self._key(key))
        except redis.RedisError as exc:
            raise CacheError(f"Redis DELETE failed for key={key!r}: {exc}") from exc
