"""Notifications — signed webhook fan-out and delivery.

Provides:
- ``sign`` / ``verify`` — the ``X-SBTC-Signature`` codec (also used by merchants)
- ``WebhookFanOut`` — persists one event per subscribed endpoint
- ``DeliveryWorker`` — one signed POST per call, with persisted retry state
- ``DeliveryDispatcher`` — runs deliveries and retry timers on asyncio tasks
"""

from __future__ import annotations

from sbtc_pay.notifications.dispatcher import DeliveryDispatcher
from sbtc_pay.notifications.events import (
    EndpointTarget,
    LegacySingleUrl,
    PerEndpoint,
    WebhookEventType,
    build_payload,
)
from sbtc_pay.notifications.fanout import WebhookFanOut
from sbtc_pay.notifications.signature import sign, verify
from sbtc_pay.notifications.webhook import DeliveryWorker, retry_delay

__all__ = [
    "DeliveryDispatcher",
    "DeliveryWorker",
    "EndpointTarget",
    "LegacySingleUrl",
    "PerEndpoint",
    "WebhookEventType",
    "WebhookFanOut",
    "build_payload",
    "retry_delay",
    "sign",
    "verify",
]
