"""Shared fixtures for integration tests.

These fixtures create a REAL PayEngine on a file-backed SQLite database;
only the merchants' HTTP servers are replaced by an ``httpx.MockTransport``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from sbtc_pay.engine.client import PayEngine
from sbtc_pay.engine.models.merchant import Merchant
from sbtc_pay.engine.models.webhook_endpoint import WebhookEndpoint

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

MERCHANT_ID = "mch_shop"
RECIPIENT = "SP2J6ZY48GV1EZ5V2V5RB9MP66SW86PYKKNRV9EJ7"


class MerchantServer:
    """Records webhook POSTs; URLs listed in ``failing`` answer 500."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.failing: set[str] = set()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if str(request.url) in self.failing:
            return httpx.Response(500, text="merchant error")
        return httpx.Response(200, text="ok")


@pytest.fixture
def merchant_server() -> MerchantServer:
    return MerchantServer()


@pytest.fixture
async def engine(app_config, merchant_server) -> AsyncIterator[PayEngine]:
    """Provide a fully initialized engine."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(merchant_server))
    eng = PayEngine(app_config, http_client=client)
    await eng.initialize()
    yield eng
    await eng.close()


@pytest.fixture
async def shop(engine: PayEngine) -> AsyncIterator[dict[str, WebhookEndpoint]]:
    """A merchant with two endpoints subscribed to succeeded payments and one to failures."""
    await engine.merchants.create_merchant(
        Merchant(id=MERCHANT_ID, name="Shop", recipient_address=RECIPIENT)
    )
    endpoints = {}
    for name, events in (
        ("orders", ["payment_intent.succeeded"]),
        ("analytics", ["payment_intent.succeeded", "payment_intent.failed"]),
        ("alerts", ["payment_intent.failed"]),
    ):
        endpoints[name] = await engine.webhooks.create_endpoint(
            WebhookEndpoint(
                id=f"we_{name}",
                merchant_id=MERCHANT_ID,
                url=f"https://shop.example/{name}",
                secret=f"whsec_{name}",
                subscribed_events=events,
                active=True,
            )
        )
    yield endpoints
