"""Payment state transition — settle a matched intent exactly once."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sbtc_pay.engine.models.payment_intent import PaymentStatus
from sbtc_pay.engine.models.webhook_event import WebhookEventType
from sbtc_pay.errors.pay_errors import TransitionConflict
from sbtc_pay.utils.clock import utcnow

if TYPE_CHECKING:
    from sbtc_pay.cache.locks import LockManager
    from sbtc_pay.chain.models import ChainTransaction
    from sbtc_pay.engine.models.payment_intent import PaymentIntent
    from sbtc_pay.engine.repository.payments import PaymentRepository
    from sbtc_pay.metrics.collector import EngineMetrics
    from sbtc_pay.notifications.fanout import WebhookFanOut

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_REASON = "Transaction failed"


def chain_metadata(tx: ChainTransaction) -> dict[str, str]:
    """Metadata recorded on an intent when *tx* settles it.

    All values are strings; unknown fields are left out rather than blanked.
    """
    patch: dict[str, str] = {
        "block_height": str(tx.block_height),
        "block_hash": tx.block_hash,
        "events_count": str(len(tx.events)),
        "mutated_contracts": ",".join(tx.mutated_contracts),
        "mutated_assets": ",".join(tx.mutated_assets),
        "processed_at": utcnow().isoformat(),
    }
    if tx.block_timestamp is not None:
        patch["block_timestamp"] = str(tx.block_timestamp)
    if tx.fee is not None:
        patch["fee"] = str(tx.fee)
    if tx.sender_address:
        patch["sender"] = tx.sender_address
    if not tx.success:
        patch["failure_reason"] = tx.result or tx.result_description or DEFAULT_FAILURE_REASON
    return patch


class PaymentTransitionService:
    """Moves an open intent to ``succeeded`` or ``failed`` and notifies the merchant."""

    def __init__(
        self,
        payments: PaymentRepository,
        locks: LockManager,
        fanout: WebhookFanOut | None = None,
        *,
        metrics: EngineMetrics | None = None,
    ) -> None:
        self._payments = payments
        self._locks = locks
        self._fanout = fanout
        self._metrics = metrics

    async def apply(self, intent: PaymentIntent, tx: ChainTransaction) -> PaymentIntent | None:
        """Settle *intent* with the outcome of *tx*.

        Returns:
            The updated intent, or ``None`` when the intent was already
            terminal (including when a concurrent transition won).
        """
        if intent.is_terminal:
            logger.debug(
                "Payment intent %s already %s; ignoring %s", intent.id, intent.status, tx.tx_id
            )
            return None

        new_status = PaymentStatus.SUCCEEDED if tx.success else PaymentStatus.FAILED
        async with self._locks.hold(f"payment_intent:{intent.id}"):
            current = await self._payments.get_intent(intent.id)
            if current is None or current.is_terminal:
                return None
            try:
                updated = await self._payments.update_status(
                    current.id,
                    expected_status=current.status,
                    new_status=new_status,
                    metadata_patch=chain_metadata(tx),
                    tx_id=tx.tx_id,
                )
            except TransitionConflict as exc:
                logger.info("Transition of %s lost a race (%s)", intent.id, exc.current_status)
                return None

        logger.info("Payment intent %s → %s via %s", updated.id, new_status, tx.tx_id)
        if self._metrics is not None:
            self._metrics.record_transition(new_status)
        await self._notify(updated, new_status)
        return updated

    async def _notify(self, intent: PaymentIntent, status: PaymentStatus) -> None:
        if self._fanout is None:
            return
        event_type = (
            WebhookEventType.PAYMENT_INTENT_SUCCEEDED
            if status == PaymentStatus.SUCCEEDED
            else WebhookEventType.PAYMENT_INTENT_FAILED
        )
        try:
            await self._fanout.publish(intent.merchant_id, event_type, intent.to_public())
        except Exception:
            # Never undoes the transition
            logger.exception("Webhook fan-out for %s failed", intent.id)
