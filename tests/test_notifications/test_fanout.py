"""Tests for webhook fan-out."""

from __future__ import annotations

import pytest

from sbtc_pay.notifications.fanout import WebhookFanOut

SUCCEEDED = "payment_intent.succeeded"
FAILED = "payment_intent.failed"

INTENT_DATA = {"id": "pi_42", "amount": 500_000, "status": "succeeded"}


class _FakeDispatcher:
    def __init__(self, accept: bool = True) -> None:
        self.dispatched: list[str] = []
        self.accept = accept

    def dispatch(self, event_id: str) -> bool:
        self.dispatched.append(event_id)
        return self.accept


@pytest.fixture
def dispatcher():
    return _FakeDispatcher()


@pytest.fixture
def fanout(webhooks, merchants, dispatcher):
    return WebhookFanOut(webhooks, merchants, dispatcher)


class TestPublish:
    async def test_no_targets_creates_nothing(
        self, fanout, dispatcher, webhooks, make_merchant
    ) -> None:
        merchant = await make_merchant()
        events = await fanout.publish(merchant.id, SUCCEEDED, INTENT_DATA)
        assert events == []
        assert dispatcher.dispatched == []
        assert await webhooks.list_events(merchant.id) == []

    async def test_unknown_merchant_creates_nothing(self, fanout) -> None:
        assert await fanout.publish("mch_unknown", SUCCEEDED, INTENT_DATA) == []

    async def test_one_event_per_subscribed_active_endpoint(
        self, fanout, dispatcher, make_endpoint
    ) -> None:
        a = await make_endpoint(merchant_id="mch_a", subscribed_events=[SUCCEEDED])
        b = await make_endpoint(merchant_id="mch_a", subscribed_events=[SUCCEEDED, FAILED])
        await make_endpoint(merchant_id="mch_a", subscribed_events=[FAILED])
        await make_endpoint(merchant_id="mch_a", subscribed_events=[SUCCEEDED], active=False)
        await make_endpoint(merchant_id="mch_b", subscribed_events=[SUCCEEDED])

        events = await fanout.publish("mch_a", SUCCEEDED, INTENT_DATA)

        assert sorted(e.webhook_endpoint_id for e in events) == sorted([a.id, b.id])
        assert dispatcher.dispatched == [e.id for e in events]
        for event in events:
            assert event.delivered is False
            assert event.attempts == 0
            assert event.event_type == SUCCEEDED
            assert event.payment_intent_id == "pi_42"
            assert event.payload["id"] == event.id
            assert event.payload["type"] == SUCCEEDED
            assert event.payload["data"] == {"object": INTENT_DATA}
            assert isinstance(event.payload["created"], int)

    async def test_events_have_distinct_ids(self, fanout, make_endpoint) -> None:
        await make_endpoint(merchant_id="mch_a")
        await make_endpoint(merchant_id="mch_a")
        events = await fanout.publish("mch_a", SUCCEEDED, INTENT_DATA)
        assert len({e.id for e in events}) == 2
        assert all(e.id.startswith("evt_") for e in events)

    async def test_events_persist_when_dispatch_declines(
        self, webhooks, merchants, make_endpoint
    ) -> None:
        dispatcher = _FakeDispatcher(accept=False)
        fanout = WebhookFanOut(webhooks, merchants, dispatcher)
        await make_endpoint(merchant_id="mch_a")
        events = await fanout.publish("mch_a", SUCCEEDED, INTENT_DATA)
        assert len(events) == 1
        assert await webhooks.get_event(events[0].id) is not None


class TestEndpointOverride:
    async def test_override_ignores_subscriptions(self, fanout, make_endpoint) -> None:
        endpoint = await make_endpoint(merchant_id="mch_a", subscribed_events=[FAILED])
        await make_endpoint(merchant_id="mch_a", subscribed_events=[SUCCEEDED])

        events = await fanout.publish("mch_a", SUCCEEDED, INTENT_DATA, endpoint_id=endpoint.id)

        assert [e.webhook_endpoint_id for e in events] == [endpoint.id]

    async def test_inactive_override_creates_nothing(self, fanout, make_endpoint) -> None:
        endpoint = await make_endpoint(merchant_id="mch_a", active=False)
        assert await fanout.publish("mch_a", SUCCEEDED, INTENT_DATA, endpoint_id=endpoint.id) == []

    async def test_override_of_other_merchant_creates_nothing(self, fanout, make_endpoint) -> None:
        endpoint = await make_endpoint(merchant_id="mch_b")
        assert await fanout.publish("mch_a", SUCCEEDED, INTENT_DATA, endpoint_id=endpoint.id) == []


class TestLegacyUrl:
    async def test_legacy_merchant_gets_one_event(self, fanout, dispatcher, make_merchant) -> None:
        merchant = await make_merchant(
            webhook_url="https://legacy.example/hook", webhook_secret="whsec_legacy"
        )
        events = await fanout.publish(merchant.id, SUCCEEDED, INTENT_DATA)
        assert len(events) == 1
        assert events[0].webhook_endpoint_id is None
        assert dispatcher.dispatched == [events[0].id]

    async def test_registered_endpoints_shadow_legacy_url(
        self, fanout, make_merchant, make_endpoint
    ) -> None:
        merchant = await make_merchant(webhook_url="https://legacy.example/hook")
        await make_endpoint(merchant_id=merchant.id, subscribed_events=[FAILED])

        # The only endpoint is not subscribed, but the legacy URL stays unused
        assert await fanout.publish(merchant.id, SUCCEEDED, INTENT_DATA) == []
