"""Webhook event model — one delivery obligation per endpoint."""

from __future__ import annotations

import enum
from datetime import datetime  # noqa: TC003 - SQLAlchemy needs this at runtime for Mapped[datetime]
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from sbtc_pay.engine.models.base import Base, TimestampMixin


class WebhookEventType(enum.StrEnum):
    """Event types merchants can subscribe to."""

    PAYMENT_INTENT_CREATED = "payment_intent.created"
    PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
    PAYMENT_INTENT_FAILED = "payment_intent.failed"
    PAYMENT_INTENT_CANCELED = "payment_intent.canceled"


class DeliveryNote(enum.StrEnum):
    """Why an undelivered event will not be re-driven automatically."""

    ENDPOINT_INACTIVE = "endpoint_inactive"
    RETRIES_EXHAUSTED = "retries_exhausted"
    NO_WEBHOOK_URL = "no_webhook_url"


class WebhookEvent(Base, TimestampMixin):
    """A signed notification owed to one endpoint (or the legacy merchant URL).

    ``webhook_endpoint_id`` is ``None`` for legacy single-URL merchants.
    Rows are kept for audit and never deleted.
    """

    __tablename__ = "webhook_events"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    merchant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    webhook_endpoint_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    payment_intent_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    delivered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_attempted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    next_retry_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    response_status: Mapped[int | None] = mapped_column(Integer, nullable=True)
    response_body: Mapped[str | None] = mapped_column(Text, nullable=True)
    status_note: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def __repr__(self) -> str:
        return f"<WebhookEvent id={self.id} type={self.event_type} delivered={self.delivered}>"
