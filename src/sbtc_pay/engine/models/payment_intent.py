"""PaymentIntent model — a request to pay a specific amount."""

from __future__ import annotations

import enum
from decimal import Decimal
from typing import Any

from sqlalchemy import BigInteger, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from sbtc_pay.engine.models.base import Base, MetadataMixin, TimestampMixin
from sbtc_pay.utils.clock import unix_seconds


class PaymentStatus(enum.StrEnum):
    """Payment intent lifecycle: created → pending → succeeded | failed | canceled."""

    CREATED = "created"
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"


OPEN_STATUSES: frozenset[PaymentStatus] = frozenset({PaymentStatus.CREATED, PaymentStatus.PENDING})
TERMINAL_STATUSES: frozenset[PaymentStatus] = frozenset(
    {PaymentStatus.SUCCEEDED, PaymentStatus.FAILED, PaymentStatus.CANCELED}
)


class PaymentIntent(Base, TimestampMixin, MetadataMixin):
    """An expected payment, settled by exactly one on-chain transaction."""

    __tablename__ = "payment_intents"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    merchant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    product_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False, comment="Smallest token unit")
    amount_usd: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    currency: Mapped[str] = mapped_column(String(10), nullable=False, default="sbtc")
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=PaymentStatus.CREATED.value, index=True
    )
    customer_address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    tx_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_public(self) -> dict[str, Any]:
        """Public representation sent to merchants as the webhook object."""
        return {
            "id": self.id,
            "amount": self.amount,
            "amount_usd": float(self.amount_usd) if self.amount_usd is not None else None,
            "currency": self.currency,
            "status": self.status,
            "customer_address": self.customer_address,
            "customer_email": self.customer_email,
            "description": self.description,
            "metadata": dict(self.metadata_ or {}),
            "tx_id": self.tx_id,
            "created": unix_seconds(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<PaymentIntent id={self.id} status={self.status}>"
