"""Payment intents repository."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select, update

from sbtc_pay.engine.models.payment_intent import PaymentIntent
from sbtc_pay.errors.definitions import ErrPaymentIntentNotFound
from sbtc_pay.errors.pay_errors import TransitionConflict
from sbtc_pay.utils.clock import utcnow

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from sbtc_pay.datastore.client import Datastore


class PaymentRepository:
    """Data access layer for payment intents."""

    def __init__(self, datastore: Datastore) -> None:
        self._ds = datastore

    async def create_intent(self, intent: PaymentIntent) -> PaymentIntent:
        """Persist a new payment intent."""
        async with self._ds.session() as session:
            session.add(intent)
            await session.commit()
            await session.refresh(intent)
        return intent

    async def get_intent(self, intent_id: str) -> PaymentIntent | None:
        """Find a payment intent by id."""
        async with self._ds.session() as session:
            return await session.get(PaymentIntent, intent_id)

    async def find_by_tx_id(self, tx_id: str) -> PaymentIntent | None:
        """Find the payment intent already bound to on-chain transaction *tx_id*."""
        async with self._ds.session() as session:
            stmt = select(PaymentIntent).where(PaymentIntent.tx_id == tx_id).limit(1)
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def find_candidates(
        self,
        merchant_id: str | None,
        statuses: Iterable[str],
        since: datetime,
        *,
        limit: int = 500,
    ) -> list[PaymentIntent]:
        """List open, unbound intents created at or after *since*, oldest first.

        Intents already carrying a ``tx_id`` belong to that transaction and are
        only reachable through :meth:`find_by_tx_id`. ``merchant_id=None`` scans
        every merchant.
        """
        async with self._ds.session() as session:
            stmt = (
                select(PaymentIntent)
                .where(
                    PaymentIntent.status.in_([str(s) for s in statuses]),
                    PaymentIntent.created_at >= since,
                    PaymentIntent.tx_id.is_(None),
                )
                .order_by(PaymentIntent.created_at.asc(), PaymentIntent.id.asc())
                .limit(limit)
            )
            if merchant_id is not None:
                stmt = stmt.where(PaymentIntent.merchant_id == merchant_id)
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def update_status(
        self,
        intent_id: str,
        *,
        expected_status: str,
        new_status: str,
        metadata_patch: dict[str, str],
        tx_id: str | None = None,
    ) -> PaymentIntent:
        """Conditionally move an intent from *expected_status* to *new_status*.

        The metadata patch is merged over the stored map; keys it does not
        name are preserved. The UPDATE is keyed on the current status so a
        concurrent writer that got there first makes this one a no-op.

        Raises:
            TransitionConflict: If the intent is no longer in *expected_status*.
            PayError: If the intent does not exist.
        """
        async with self._ds.session() as session:
            stmt = select(PaymentIntent).where(PaymentIntent.id == intent_id)
            if self._ds.is_postgres:
                stmt = stmt.with_for_update()
            intent = (await session.execute(stmt)).scalar_one_or_none()
            if intent is None:
                raise ErrPaymentIntentNotFound
            if intent.status != expected_status:
                raise TransitionConflict(intent_id, intent.status)

            values: dict = {
                PaymentIntent.status: new_status,
                PaymentIntent.metadata_: intent.merged_metadata(metadata_patch),
                PaymentIntent.updated_at: utcnow(),
            }
            if tx_id is not None:
                values[PaymentIntent.tx_id] = tx_id

            result = await session.execute(
                update(PaymentIntent)
                .where(
                    PaymentIntent.id == intent_id,
                    PaymentIntent.status == expected_status,
                )
                .values(values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:  # type: ignore[union-attr]
                await session.rollback()
                raise TransitionConflict(intent_id, None)
            await session.commit()
            await session.refresh(intent)
            return intent
