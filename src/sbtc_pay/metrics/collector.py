"""Metrics collector — Prometheus counters, gauges, histograms.

Exported series:
- ``sbtc_pay_stats_total`` gauge-vec (open intents, pending and exhausted webhook events)
- ``sbtc_pay_chain_transactions_total`` counter by outcome
- ``sbtc_pay_matches_total`` counter by match method
- ``sbtc_pay_transitions_total`` counter by new status
- ``sbtc_pay_webhook_deliveries_total`` counter by outcome
- ``sbtc_pay_chainhook_batch_histogram`` / ``sbtc_pay_webhook_delivery_histogram``
- ``sbtc_pay_cron_histogram`` / ``sbtc_pay_cron_last_execution_gauge``
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

if TYPE_CHECKING:
    from collections.abc import Iterator


_PREFIX = "sbtc_pay"

_STAT_LABELS = ("entity",)


class MetricsCollector:
    """Low-level Prometheus collector that owns the registry.

    Use :class:`EngineMetrics` for the high-level tracking interface.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def gauge(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Gauge:
        return Gauge(name, doc, labels, registry=self._registry)

    def histogram(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Histogram:
        return Histogram(name, doc, labels, registry=self._registry)

    def counter(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Counter:
        return Counter(name, doc, labels, registry=self._registry)


class EngineMetrics:
    """High-level metrics for reconciliation and webhook delivery.

    All histograms track operation duration in seconds.
    """

    def __init__(self, collector: MetricsCollector | None = None) -> None:
        self._collector = collector or MetricsCollector()

        self._stats = self._collector.gauge(
            f"{_PREFIX}_stats_total",
            "Record counts in the payment engine",
            _STAT_LABELS,
        )

        self._chain_txs = self._collector.counter(
            f"{_PREFIX}_chain_transactions",
            "Chain transactions received, by processing outcome",
            ("outcome",),
        )
        self._matches = self._collector.counter(
            f"{_PREFIX}_matches",
            "Transactions matched to a payment intent, by method",
            ("method",),
        )
        self._transitions = self._collector.counter(
            f"{_PREFIX}_transitions",
            "Payment intent state transitions, by new status",
            ("status",),
        )
        self._deliveries = self._collector.counter(
            f"{_PREFIX}_webhook_deliveries",
            "Webhook delivery attempts, by outcome",
            ("outcome",),
        )

        self._batch = self._collector.histogram(
            f"{_PREFIX}_chainhook_batch_histogram",
            "Duration of chainhook batch processing",
        )
        self._delivery = self._collector.histogram(
            f"{_PREFIX}_webhook_delivery_histogram",
            "Duration of webhook delivery attempts",
        )

        self._cron_histogram = self._collector.histogram(
            f"{_PREFIX}_cron_histogram",
            "Duration of cron job executions",
            ("job_name",),
        )
        self._cron_last = self._collector.gauge(
            f"{_PREFIX}_cron_last_execution_gauge",
            "Timestamp of last cron execution",
            ("job_name",),
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._collector.registry

    # -- Stat setters --

    def set_open_intent_count(self, count: int) -> None:
        self._stats.labels(entity="open_payment_intents").set(count)

    def set_pending_event_count(self, count: int) -> None:
        self._stats.labels(entity="pending_webhook_events").set(count)

    def set_exhausted_event_count(self, count: int) -> None:
        self._stats.labels(entity="exhausted_webhook_events").set(count)

    # -- Counters --

    def record_chain_transaction(self, outcome: str) -> None:
        """Count a processed transaction (``transitioned``, ``unmatched``, ``noop``, ``error``)."""
        self._chain_txs.labels(outcome=outcome).inc()

    def record_match(self, method: str) -> None:
        self._matches.labels(method=method).inc()

    def record_transition(self, status: str) -> None:
        self._transitions.labels(status=status).inc()

    def record_delivery(self, outcome: str) -> None:
        """Count a delivery outcome (``delivered``, ``failed``, ``exhausted``, ``skipped``)."""
        self._deliveries.labels(outcome=outcome).inc()

    # -- Operation trackers (context managers) --

    @contextmanager
    def track_batch(self) -> Iterator[None]:
        start = time.monotonic()
        try:
            yield
        finally:
            self._batch.observe(time.monotonic() - start)

    @contextmanager
    def track_delivery(self) -> Iterator[None]:
        start = time.monotonic()
        try:
            yield
        finally:
            self._delivery.observe(time.monotonic() - start)

    @contextmanager
    def track_cron(self, job_name: str) -> Iterator[None]:
        """Track the duration of a cron job and record last execution time."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._cron_histogram.labels(job_name=job_name).observe(time.monotonic() - start)
            self._cron_last.labels(job_name=job_name).set(time.time())
