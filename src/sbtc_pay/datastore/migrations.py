"""Schema bootstrap for the payment and webhook tables.

Missing tables are created on engine start. Column changes on an existing
PostgreSQL database are applied by hand.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sbtc_pay.engine.models.base import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)


async def run_auto_migrate(engine: AsyncEngine) -> None:
    """Create every mapped table that does not exist yet."""
    # Registers the mapped classes on Base.metadata
    import sbtc_pay.engine.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Schema ready: %s", ", ".join(sorted(Base.metadata.tables)))
