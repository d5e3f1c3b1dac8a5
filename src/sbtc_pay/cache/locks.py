"""Per-record mutual exclusion.

A lock is an in-process ``asyncio.Lock`` (serialises tasks of this process)
plus a ``SET NX`` key in the cache (serialises processes sharing a Redis).
The cache key carries a TTL so a crashed holder cannot wedge a record.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sbtc_pay.errors.definitions import ErrLockTimeout

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sbtc_pay.cache.client import CacheClient

logger = logging.getLogger(__name__)

_LOCK_PREFIX = "lock:"


class LockManager:
    """Hands out named locks such as ``payment_intent:<id>``."""

    def __init__(
        self,
        cache: CacheClient,
        *,
        ttl_seconds: int = 60,
        wait_timeout: float = 30.0,
        poll_interval: float = 0.05,
    ) -> None:
        self._cache = cache
        self._ttl = ttl_seconds
        self._wait_timeout = wait_timeout
        self._poll_interval = poll_interval
        self._local: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, name: str) -> AsyncIterator[None]:
        """Hold the lock *name* for the duration of the ``async with`` block.

        Raises:
            PayError: ``lock-timeout`` if the cache key stays taken for
                longer than the wait timeout.
        """
        local = self._local.setdefault(name, asyncio.Lock())
        self._waiters[name] = self._waiters.get(name, 0) + 1
        try:
            async with local:
                token = await self._acquire_shared(name)
                try:
                    yield
                finally:
                    await self._release_shared(name, token)
        finally:
            self._waiters[name] -= 1
            if self._waiters[name] == 0:
                del self._waiters[name]
                self._local.pop(name, None)

    def is_held(self, name: str) -> bool:
        local = self._local.get(name)
        return local is not None and local.locked()

    async def _acquire_shared(self, name: str) -> str:
        key = _LOCK_PREFIX + name
        token = secrets.token_hex(8)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._wait_timeout
        while not await self._cache.set_nx(key, token, ttl=self._ttl):
            if loop.time() >= deadline:
                logger.warning("Timed out waiting for lock %s", name)
                raise ErrLockTimeout
            await asyncio.sleep(self._poll_interval)
        return token

    async def _release_shared(self, name: str, token: str) -> None:
        key = _LOCK_PREFIX + name
        # Only drop the key if it is still ours (the TTL may have handed it on)
        if await self._cache.get(key) == token:
            await self._cache.delete(key)
