"""Webhook event envelopes and delivery targets.

Payload envelope sent to merchants::

    {"id": "evt_…", "type": "payment_intent.succeeded",
     "data": {"object": {...}}, "created": 1700000000}
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from sbtc_pay.engine.models.webhook_event import WebhookEventType
from sbtc_pay.utils.clock import unix_seconds, utcnow
from sbtc_pay.utils.crypto import generate_id

EVENT_ID_PREFIX = "evt"


def new_event_id() -> str:
    return generate_id(EVENT_ID_PREFIX, 12)


def build_payload(
    event_id: str,
    event_type: str,
    data: dict[str, Any],
    *,
    created: int | None = None,
) -> dict[str, Any]:
    """Wrap *data* in the webhook envelope."""
    return {
        "id": event_id,
        "type": str(event_type),
        "data": {"object": data},
        "created": unix_seconds(utcnow()) if created is None else created,
    }


def encode_payload(payload: dict[str, Any]) -> bytes:
    """Serialise a payload to the exact bytes that are signed and sent."""
    return json.dumps(payload, separators=(",", ":"), default=str).encode("utf-8")


# ---------------------------------------------------------------------------
# Delivery targets
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PerEndpoint:
    """A registered webhook endpoint."""

    endpoint_id: str
    url: str
    secret: str
    active: bool


@dataclass(frozen=True)
class LegacySingleUrl:
    """The merchant-level URL/secret pair of merchants without endpoints."""

    merchant_id: str
    url: str | None
    secret: str


EndpointTarget = PerEndpoint | LegacySingleUrl

__all__ = [
    "EndpointTarget",
    "LegacySingleUrl",
    "PerEndpoint",
    "WebhookEventType",
    "build_payload",
    "encode_payload",
    "new_event_id",
]
