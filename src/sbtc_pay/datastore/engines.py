"""Async engine construction for the two supported stores."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from sbtc_pay.config.settings import DatabaseEngine

if TYPE_CHECKING:
    from sbtc_pay.config.settings import DatabaseConfig

_DSN_SCHEMES = {
    DatabaseEngine.SQLITE: "sqlite+aiosqlite",
    DatabaseEngine.POSTGRESQL: "postgresql+asyncpg",
}


def create_engine(config: DatabaseConfig) -> AsyncEngine:
    """Build the ``AsyncEngine`` for ``config.engine``.

    SQLite connections wait up to ``sqlite_busy_timeout`` seconds for the
    write lock, since deliveries and payment transitions commit
    concurrently. PostgreSQL gets a bounded, pre-pinged pool.

    Raises:
        ValueError: If the DSN does not use the driver of the configured engine.
    """
    scheme = _DSN_SCHEMES[config.engine]
    if not config.dsn.startswith(f"{scheme}://"):
        msg = f"{config.engine} requires a {scheme}:// DSN"
        raise ValueError(msg)

    kwargs: dict[str, Any] = {"echo": config.debug_sql}
    if config.engine is DatabaseEngine.SQLITE:
        kwargs["connect_args"] = {"timeout": config.sqlite_busy_timeout}
    else:
        kwargs["pool_size"] = config.max_idle_connections
        kwargs["max_overflow"] = max(config.max_open_connections - config.max_idle_connections, 0)
        kwargs["pool_pre_ping"] = True

    return create_async_engine(config.dsn, **kwargs)
