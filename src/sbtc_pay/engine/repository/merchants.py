"""Merchants repository."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from sbtc_pay.engine.models.merchant import Merchant

if TYPE_CHECKING:
    from sbtc_pay.datastore.client import Datastore


class MerchantRepository:
    """Data access layer for merchants."""

    def __init__(self, datastore: Datastore) -> None:
        self._ds = datastore

    async def create_merchant(self, merchant: Merchant) -> Merchant:
        """Persist a new merchant."""
        async with self._ds.session() as session:
            session.add(merchant)
            await session.commit()
            await session.refresh(merchant)
        return merchant

    async def get_merchant(self, merchant_id: str) -> Merchant | None:
        """Find a merchant by id."""
        async with self._ds.session() as session:
            return await session.get(Merchant, merchant_id)

    async def find_by_recipient(self, address: str) -> Merchant | None:
        """Find the merchant payments to *address* settle for."""
        async with self._ds.session() as session:
            stmt = select(Merchant).where(Merchant.recipient_address == address).limit(1)
            result = await session.execute(stmt)
            return result.scalar_one_or_none()
