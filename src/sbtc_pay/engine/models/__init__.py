"""Engine data models (SQLAlchemy ORM).

Import :data:`ALL_MODELS` for table creation.
"""

from sbtc_pay.engine.models.base import Base, MetadataMixin, TimestampMixin
from sbtc_pay.engine.models.merchant import Merchant
from sbtc_pay.engine.models.payment_intent import (
    OPEN_STATUSES,
    TERMINAL_STATUSES,
    PaymentIntent,
    PaymentStatus,
)
from sbtc_pay.engine.models.webhook_endpoint import WebhookEndpoint
from sbtc_pay.engine.models.webhook_event import DeliveryNote, WebhookEvent, WebhookEventType

ALL_MODELS: list[type[Base]] = [
    Merchant,
    PaymentIntent,
    WebhookEndpoint,
    WebhookEvent,
]

__all__ = [
    "ALL_MODELS",
    "OPEN_STATUSES",
    "TERMINAL_STATUSES",
    "Base",
    "DeliveryNote",
    "Merchant",
    "MetadataMixin",
    "PaymentIntent",
    "PaymentStatus",
    "TimestampMixin",
    "WebhookEndpoint",
    "WebhookEvent",
    "WebhookEventType",
]
