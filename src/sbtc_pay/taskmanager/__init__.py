"""Task manager — background cron jobs.

Jobs registered by the engine:
- ``redeliver_webhooks`` — recovery sweep for due and stranded webhook events
- ``calculate_metrics`` — record counts for Prometheus gauges
"""

from __future__ import annotations

from sbtc_pay.taskmanager.manager import CronJob, TaskManager

__all__ = ["CronJob", "TaskManager"]
