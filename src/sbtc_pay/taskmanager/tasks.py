"""Background task definitions — cron job handlers.

- ``redeliver_webhooks`` (15 s, also at start) — re-drive due retries and
  events whose first delivery never happened
- ``calculate_metrics`` (30 s) — record counts for Prometheus gauges
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from sqlalchemy import func, select

from sbtc_pay.engine.models.payment_intent import OPEN_STATUSES, PaymentIntent
from sbtc_pay.engine.models.webhook_event import DeliveryNote
from sbtc_pay.utils.clock import utcnow

if TYPE_CHECKING:
    from sbtc_pay.engine.client import PayEngine
    from sbtc_pay.metrics.collector import EngineMetrics

logger = logging.getLogger(__name__)

REDELIVER_WEBHOOKS_JOB = "redeliver_webhooks"
CALCULATE_METRICS_JOB = "calculate_metrics"


async def task_redeliver_webhooks(engine: PayEngine) -> int:
    """Hand every due undelivered event to the dispatcher.

    Picks up events whose ``next_retry_at`` has passed and events that were
    persisted but never attempted (the process stopped before dispatch).
    Events that already have a timer armed in this process are skipped by
    the dispatcher.

    Returns:
        Number of events dispatched.
    """
    try:
        config = engine.config.webhook
        now = utcnow()
        due = await engine.webhooks.list_due_events(
            now=now,
            stale_before=now - timedelta(seconds=config.stale_after_seconds),
            max_attempts=config.max_attempts,
            limit=config.sweep_batch_size,
        )
        dispatched = sum(1 for event in due if engine.dispatcher.dispatch(event.id))
        if dispatched:
            logger.info("Re-dispatched %d webhook event(s)", dispatched)
        return dispatched
    except Exception:
        logger.exception("redeliver_webhooks failed")
        return 0


async def task_calculate_metrics(engine: PayEngine, metrics: EngineMetrics) -> None:
    """Count open intents and webhook backlog and push to Prometheus gauges."""
    try:
        async with engine.datastore.session() as session:
            stmt = select(func.count(PaymentIntent.id)).where(
                PaymentIntent.status.in_([str(s) for s in OPEN_STATUSES])
            )
            open_count = (await session.execute(stmt)).scalar() or 0

        pending = await engine.webhooks.count_events(delivered=False)
        exhausted = await engine.webhooks.count_events(
            delivered=False, status_note=DeliveryNote.RETRIES_EXHAUSTED.value
        )
        metrics.set_open_intent_count(open_count)
        metrics.set_pending_event_count(pending)
        metrics.set_exhausted_event_count(exhausted)
    except Exception:
        logger.exception("calculate_metrics failed")
