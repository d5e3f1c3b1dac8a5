"""Shared test fixtures for the py-sbtc-pay test suite."""

from __future__ import annotations

import itertools
from typing import TYPE_CHECKING, Any

import pytest

from sbtc_pay.config.settings import (
    AppConfig,
    CacheConfig,
    CacheEngine,
    ChainhookConfig,
    DatabaseConfig,
    DatabaseEngine,
    TaskConfig,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

SBTC_ASSET = "SM3VDXK3WZZSA84XXFKAFAF15NNZX32CTSG82JFQ4.sbtc-token::sbtc-token"
MERCHANT_ADDRESS = "SP2J6ZY48GV1EZ5V2V5RB9MP66SW86PYKKNRV9EJ7"
CUSTOMER_ADDRESS = "SP3FBR2AGK5H9QBDH3EEN6DF8EK8JY7RX8QJ5SVTE"

_counter = itertools.count(1)


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    """Provide a test AppConfig with safe defaults (file-backed SQLite, no cron jobs).

    Each session gets its own connection, so concurrent delivery tasks never
    share a transaction.
    """
    return AppConfig(
        debug=True,
        admin_token="test-admin-token",
        db=DatabaseConfig(
            engine=DatabaseEngine.SQLITE,
            dsn=f"sqlite+aiosqlite:///{tmp_path / 'sbtc_pay.db'}",
        ),
        cache=CacheConfig(engine=CacheEngine.MEMORY),
        chainhook=ChainhookConfig(bearer_token="test-chainhook-token"),
        task=TaskConfig(enabled=False),
    )


@pytest.fixture
async def datastore(app_config) -> AsyncIterator:
    """An open datastore with all tables created."""
    from sbtc_pay.datastore.client import Datastore
    from sbtc_pay.engine.models.base import Base

    ds = Datastore(app_config.db)
    await ds.open(base=Base)
    yield ds
    await ds.close()


@pytest.fixture
def payments(datastore):
    from sbtc_pay.engine.repository.payments import PaymentRepository

    return PaymentRepository(datastore)


@pytest.fixture
def merchants(datastore):
    from sbtc_pay.engine.repository.merchants import MerchantRepository

    return MerchantRepository(datastore)


@pytest.fixture
def webhooks(datastore):
    from sbtc_pay.engine.repository.webhooks import WebhookRepository

    return WebhookRepository(datastore)


@pytest.fixture
async def cache(app_config) -> AsyncIterator:
    from sbtc_pay.cache.client import CacheClient

    client = CacheClient(app_config.cache)
    await client.connect()
    yield client
    await client.close()


@pytest.fixture
def locks(cache):
    from sbtc_pay.cache.locks import LockManager

    return LockManager(cache, ttl_seconds=5, wait_timeout=1.0, poll_interval=0.01)


# ---------------------------------------------------------------------------
# Record factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_merchant(merchants):
    """Async factory persisting a merchant."""
    from sbtc_pay.engine.models.merchant import Merchant

    async def _make(**overrides: Any) -> Merchant:
        fields: dict[str, Any] = {
            "id": f"mch_{next(_counter)}",
            "name": "Test Merchant",
            "recipient_address": None,
        }
        fields.update(overrides)
        return await merchants.create_merchant(Merchant(**fields))

    return _make


@pytest.fixture
def make_intent(payments):
    """Async factory persisting a payment intent (500,000 units, ``created``)."""
    from sbtc_pay.engine.models.payment_intent import PaymentIntent

    async def _make(**overrides: Any) -> PaymentIntent:
        fields: dict[str, Any] = {
            "id": f"pi_{next(_counter)}",
            "merchant_id": "mch_default",
            "amount": 500_000,
            "currency": "sbtc",
            "status": "created",
        }
        fields.update(overrides)
        return await payments.create_intent(PaymentIntent(**fields))

    return _make


@pytest.fixture
def make_endpoint(webhooks):
    """Async factory persisting a webhook endpoint."""
    from sbtc_pay.engine.models.webhook_endpoint import WebhookEndpoint

    async def _make(**overrides: Any) -> WebhookEndpoint:
        n = next(_counter)
        fields: dict[str, Any] = {
            "id": f"we_{n}",
            "merchant_id": "mch_default",
            "url": f"https://merchant.example/hooks/{n}",
            "secret": f"whsec_test_{n}",
            "subscribed_events": ["payment_intent.succeeded", "payment_intent.failed"],
            "active": True,
        }
        fields.update(overrides)
        return await webhooks.create_endpoint(WebhookEndpoint(**fields))

    return _make


@pytest.fixture
def make_event(webhooks):
    """Async factory persisting an undelivered webhook event."""
    from sbtc_pay.engine.models.webhook_event import WebhookEvent
    from sbtc_pay.notifications.events import build_payload

    async def _make(**overrides: Any) -> WebhookEvent:
        event_id = overrides.pop("id", f"evt_{next(_counter)}")
        event_type = overrides.pop("event_type", "payment_intent.succeeded")
        fields: dict[str, Any] = {
            "id": event_id,
            "merchant_id": "mch_default",
            "webhook_endpoint_id": None,
            "event_type": event_type,
            "payment_intent_id": "pi_1",
            "payload": build_payload(event_id, event_type, {"id": "pi_1", "amount": 500_000}),
            "delivered": False,
            "attempts": 0,
        }
        fields.update(overrides)
        return await webhooks.insert_event(WebhookEvent(**fields))

    return _make


# ---------------------------------------------------------------------------
# Chain data builders
# ---------------------------------------------------------------------------


def _transfer_event(amount: Any, recipient: str | None, asset: str) -> dict[str, Any]:
    data: dict[str, Any] = {
        "asset_identifier": asset,
        "amount": str(amount),
        "sender": CUSTOMER_ADDRESS,
    }
    if recipient is not None:
        data["recipient"] = recipient
    return {"type": "FTTransferEvent", "data": data}


@pytest.fixture
def make_tx():
    """Builder for :class:`ChainTransaction` carrying one sBTC transfer."""
    from sbtc_pay.chain.models import ChainTransaction, LedgerEvent

    def _make(
        tx_id: str = "0xabc",
        *,
        success: bool = True,
        amount: Any = 500_000,
        recipient: str | None = MERCHANT_ADDRESS,
        asset: str = SBTC_ASSET,
        events: list[LedgerEvent] | None = None,
        result: str | None = None,
    ) -> ChainTransaction:
        if events is None:
            raw = _transfer_event(amount, recipient, asset)
            events = [LedgerEvent(type=raw["type"], data=raw["data"])]
        return ChainTransaction(
            tx_id=tx_id,
            success=success,
            block_height=150_000,
            block_hash="0xblockhash",
            block_timestamp=1_700_000_000,
            sender_address=CUSTOMER_ADDRESS,
            fee=180,
            events=events,
            result=result,
            result_description="transfer",
            mutated_contracts=["SM3VDXK3WZZSA84XXFKAFAF15NNZX32CTSG82JFQ4.sbtc-token"],
            mutated_assets=[SBTC_ASSET],
        )

    return _make


@pytest.fixture
def chainhook_body():
    """Builder for a chainhook batch dict with one block."""

    def _make(
        transactions: list[dict[str, Any]] | None = None,
        *,
        rollback: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        return {
            "apply": [
                {
                    "block_identifier": {"index": 150_000, "hash": "0xblockhash"},
                    "parent_block_identifier": {"index": 149_999, "hash": "0xparent"},
                    "timestamp": 1_700_000_000,
                    "transactions": transactions or [],
                }
            ],
            "rollback": rollback or [],
        }

    return _make


@pytest.fixture
def chainhook_tx():
    """Builder for one transaction entry inside a chainhook block."""

    def _make(
        tx_id: str = "0xabc",
        *,
        success: bool = True,
        amount: Any = 500_000,
        recipient: str | None = MERCHANT_ADDRESS,
        asset: str = SBTC_ASSET,
    ) -> dict[str, Any]:
        return {
            "transaction_identifier": {"hash": tx_id},
            "metadata": {
                "success": success,
                "fee": 180,
                "sender": CUSTOMER_ADDRESS,
                "result": "(ok true)" if success else "(err u1)",
                "description": "transfer",
                "receipts": {
                    "events": [_transfer_event(amount, recipient, asset)],
                    "mutated_contracts_radius": [
                        "SM3VDXK3WZZSA84XXFKAFAF15NNZX32CTSG82JFQ4.sbtc-token"
                    ],
                    "mutated_assets_radius": [SBTC_ASSET],
                },
            },
        }

    return _make
