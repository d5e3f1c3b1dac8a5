"""Redis cache backend."""

from __future__ import annotations

from typing import TYPE_CHECKING

from redis.asyncio import Redis

if TYPE_CHECKING:
    from sbtc_pay.config.settings import CacheConfig


class RedisCache:
    """Redis-based cache client using redis-py with the hiredis parser.

    Shared by every engine process, which makes ``set_nx`` usable as a
    cross-process lock primitive.
    """

    def __init__(self, config: CacheConfig) -> None:
        self._config = config
        self._redis: Redis | None = None

    async def connect(self) -> None:
        """Connect to Redis.

        Raises:
            ConnectionError: If Redis connection fails.
        """
        self._redis = Redis.from_url(
            self._config.url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=self._config.max_connections,
        )
        try:
            await self._redis.ping()
        except Exception as e:
            msg = f"Failed to connect to Redis at {self._config.url}"
            raise ConnectionError(msg) from e

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    def _client(self) -> Redis:
        assert self._redis is not None
        return self._redis

    async def get(self, key: str) -> str | None:
        return await self._client().get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        if ttl is not None:
            await self._client().setex(key, ttl, value)
        else:
            await self._client().set(key, value)

    async def set_nx(self, key: str, value: str, ttl: int | None = None) -> bool:
        result = await self._client().set(key, value, nx=True, ex=ttl)
        return bool(result)

    async def delete(self, key: str) -> None:
        await self._client().delete(key)

    async def exists(self, key: str) -> bool:
        result = await self._client().exists(key)
        return bool(result)
