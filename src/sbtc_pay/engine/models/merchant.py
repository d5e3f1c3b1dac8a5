"""Merchant model — the owner of payment intents and webhook endpoints."""

from __future__ import annotations

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from sbtc_pay.engine.models.base import Base, TimestampMixin


class Merchant(Base, TimestampMixin):
    """A merchant account.

    Only the fields the reconciliation engine reads are modelled; profile
    and API-key management live in the surrounding product.
    ``webhook_url`` / ``webhook_secret`` are the legacy single-URL delivery
    target used when a merchant has registered no endpoints.
    """

    __tablename__ = "merchants"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    recipient_address: Mapped[str | None] = mapped_column(
        String(255), nullable=True, index=True, comment="Address payments settle to"
    )
    webhook_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    webhook_secret: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Merchant id={self.id}>"
