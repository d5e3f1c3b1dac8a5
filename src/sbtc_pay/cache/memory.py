"""In-memory cache backend for single-process deployments and tests."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sbtc_pay.config.settings import CacheConfig


class MemoryCache:
    """Dict-backed cache with per-key expiry.

    Lock keys live here when no Redis is configured, so every key is checked
    for expiry on read and stale entries are dropped lazily.
    """

    def __init__(self, config: CacheConfig) -> None:
        self._config = config
        self._entries: dict[str, tuple[str, float | None]] = {}

    async def connect(self) -> None:  # noqa: ASYNC910
        """No-op for the in-memory backend."""

    async def close(self) -> None:  # noqa: ASYNC910
        self._entries.clear()

    def _live(self, key: str) -> tuple[str, float | None] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        _, expiry = entry
        if expiry is not None and time.monotonic() > expiry:
            del self._entries[key]
            return None
        return entry

    async def get(self, key: str) -> str | None:  # noqa: ASYNC910
        entry = self._live(key)
        return entry[0] if entry is not None else None

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:  # noqa: ASYNC910
        expiry = None if ttl is None else time.monotonic() + ttl
        self._entries[key] = (value, expiry)

    async def set_nx(self, key: str, value: str, ttl: int | None = None) -> bool:  # noqa: ASYNC910
        if self._live(key) is not None:
            return False
        expiry = None if ttl is None else time.monotonic() + ttl
        self._entries[key] = (value, expiry)
        return True

    async def delete(self, key: str) -> None:  # noqa: ASYNC910
        self._entries.pop(key, None)

    async def exists(self, key: str) -> bool:  # noqa: ASYNC910
        return self._live(key) is not None
