"""Key-value cache used for cross-process payment and delivery locks."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from sbtc_pay.config.settings import CacheEngine

if TYPE_CHECKING:
    from sbtc_pay.config.settings import CacheConfig

logger = logging.getLogger(__name__)


class CacheBackend(Protocol):
    """Operations a backend must provide."""

    async def connect(self) -> None: ...
    async def close(self) -> None: ...
    async def get(self, key: str) -> str | None: ...
    async def set(self, key: str, value: str, ttl: int | None = None) -> None: ...
    async def set_nx(self, key: str, value: str, ttl: int | None = None) -> bool: ...
    async def delete(self, key: str) -> None: ...
    async def exists(self, key: str) -> bool: ...


def _make_backend(config: CacheConfig) -> CacheBackend:
    from sbtc_pay.cache.memory import MemoryCache
    from sbtc_pay.cache.redis import RedisCache

    if config.engine == CacheEngine.REDIS:
        return RedisCache(config)
    if config.engine == CacheEngine.MEMORY:
        return MemoryCache(config)
    msg = f"Unsupported cache engine: {config.engine}"
    raise ValueError(msg)


class CacheClient:
    """Front for the configured backend.

    With the memory backend, locks only exclude coroutines of this process;
    Redis extends them across every engine process sharing the server.
    """

    def __init__(self, config: CacheConfig) -> None:
        self._config = config
        self._backend: CacheBackend | None = None

    @property
    def is_connected(self) -> bool:
        return self._backend is not None

    async def connect(self) -> None:
        """Create and connect the backend.

        Raises:
            ValueError: If the cache engine is not supported.
            ConnectionError: If Redis cannot be reached.
        """
        backend = _make_backend(self._config)
        await backend.connect()
        self._backend = backend
        logger.info("Cache connected (%s)", self._config.engine)

    async def close(self) -> None:
        if self._backend is None:
            return
        await self._backend.close()
        self._backend = None

    def _require(self) -> CacheBackend:
        if self._backend is None:
            msg = "cache is not connected; call connect() first"
            raise RuntimeError(msg)
        return self._backend

    async def get(self, key: str) -> str | None:
        return await self._require().get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        await self._require().set(key, value, ttl=ttl)

    async def set_nx(self, key: str, value: str, ttl: int | None = None) -> bool:
        """Set *key* only if it is absent.

        Returns:
            True if this call created the key, False if it already existed.
        """
        return await self._require().set_nx(key, value, ttl=ttl)

    async def delete(self, key: str) -> None:
        await self._require().delete(key)

    async def exists(self, key: str) -> bool:
        return await self._require().exists(key)
