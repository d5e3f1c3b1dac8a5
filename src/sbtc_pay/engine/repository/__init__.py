"""Repositories — the data access layer.

Each repository encapsulates all database queries for its entity.
"""

from sbtc_pay.engine.repository.merchants import MerchantRepository
from sbtc_pay.engine.repository.payments import PaymentRepository
from sbtc_pay.engine.repository.webhooks import WebhookRepository

__all__ = [
    "MerchantRepository",
    "PaymentRepository",
    "WebhookRepository",
]
