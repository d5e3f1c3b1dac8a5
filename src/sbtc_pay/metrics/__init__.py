"""Metrics — Prometheus metrics collection and exposure."""

from __future__ import annotations

from sbtc_pay.metrics.collector import EngineMetrics, MetricsCollector

__all__ = ["EngineMetrics", "MetricsCollector"]
