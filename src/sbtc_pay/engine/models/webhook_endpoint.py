"""Webhook endpoint model — a merchant-registered delivery target."""

from __future__ import annotations

from sqlalchemy import JSON, Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from sbtc_pay.engine.models.base import Base, TimestampMixin


class WebhookEndpoint(Base, TimestampMixin):
    """A merchant-owned URL subscribed to a set of event types.

    ``secret`` is generated at creation and never rotated in place; rotating
    means registering a replacement endpoint and deactivating this one.
    """

    __tablename__ = "webhook_endpoints"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    merchant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    secret: Mapped[str] = mapped_column(Text, nullable=False)
    subscribed_events: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def subscribes_to(self, event_type: str) -> bool:
        return event_type in set(self.subscribed_events or ())

    def __repr__(self) -> str:
        return f"<WebhookEndpoint id={self.id} url={self.url[:30]}>"
