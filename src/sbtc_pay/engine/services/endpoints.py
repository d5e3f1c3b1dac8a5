"""Webhook endpoint management and delivery audit for merchants."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

from sbtc_pay.engine.models.webhook_endpoint import WebhookEndpoint
from sbtc_pay.engine.models.webhook_event import WebhookEventType
from sbtc_pay.errors.definitions import (
    ErrEndpointInactive,
    ErrEndpointNotFound,
    ErrEventAlreadyDelivered,
    ErrEventNotFound,
    ErrInvalidWebhookURL,
    ErrNoEventTypes,
)
from sbtc_pay.errors.pay_errors import ExhaustedRetries, PayError, ValidationError
from sbtc_pay.utils.crypto import generate_id, generate_webhook_secret

if TYPE_CHECKING:
    from sbtc_pay.engine.models.webhook_event import WebhookEvent
    from sbtc_pay.engine.repository.webhooks import WebhookRepository
    from sbtc_pay.notifications.fanout import WebhookFanOut
    from sbtc_pay.notifications.webhook import DeliveryWorker

logger = logging.getLogger(__name__)

ENDPOINT_ID_PREFIX = "we"
TEST_EVENT_AMOUNT = 100_000
MAX_EVENTS_PAGE = 100


def build_test_payment_intent() -> dict[str, Any]:
    """A synthetic succeeded intent used for "send test event"."""
    now = time.time()
    return {
        "id": f"pi_test_{int(now * 1000)}",
        "amount": TEST_EVENT_AMOUNT,
        "currency": "sbtc",
        "status": "succeeded",
        "description": "Test webhook payment",
        "metadata": {"test": True},
        "created": int(now),
    }


class WebhookAdminService:
    """Merchant-facing operations on endpoints and their event log."""

    def __init__(
        self,
        webhooks: WebhookRepository,
        fanout: WebhookFanOut,
        worker: DeliveryWorker,
    ) -> None:
        self._webhooks = webhooks
        self._fanout = fanout
        self._worker = worker

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def register_endpoint(
        self,
        merchant_id: str,
        url: str,
        events: list[str],
        *,
        description: str | None = None,
    ) -> WebhookEndpoint:
        """Register a new endpoint with a freshly generated signing secret.

        Raises:
            ValidationError: Bad URL scheme, no events, or an unknown event type.
        """
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ErrInvalidWebhookURL
        if not events:
            raise ErrNoEventTypes
        known = {t.value for t in WebhookEventType}
        unknown = sorted(set(events) - known)
        if unknown:
            msg = f"unknown event type(s): {', '.join(unknown)}"
            raise ValidationError(msg, code="invalid-event-type")

        endpoint = WebhookEndpoint(
            id=generate_id(ENDPOINT_ID_PREFIX, 12),
            merchant_id=merchant_id,
            url=url,
            secret=generate_webhook_secret(),
            subscribed_events=sorted(set(events)),
            description=description,
            active=True,
        )
        endpoint = await self._webhooks.create_endpoint(endpoint)
        logger.info("Registered webhook endpoint %s for merchant %s", endpoint.id, merchant_id)
        return endpoint

    async def list_endpoints(self, merchant_id: str) -> list[WebhookEndpoint]:
        return await self._webhooks.list_endpoints(merchant_id)

    async def get_endpoint(self, merchant_id: str, endpoint_id: str) -> WebhookEndpoint:
        endpoint = await self._webhooks.get_endpoint(endpoint_id, merchant_id=merchant_id)
        if endpoint is None:
            raise ErrEndpointNotFound
        return endpoint

    async def deactivate_endpoint(self, merchant_id: str, endpoint_id: str) -> WebhookEndpoint:
        """Disable an endpoint. Its row and event history are kept."""
        endpoint = await self.get_endpoint(merchant_id, endpoint_id)
        await self._webhooks.set_endpoint_active(endpoint.id, False)
        endpoint.active = False
        logger.info("Deactivated webhook endpoint %s", endpoint.id)
        return endpoint

    async def send_test_event(self, merchant_id: str, endpoint_id: str) -> WebhookEvent:
        """Queue a ``payment_intent.succeeded`` test event for one endpoint."""
        endpoint = await self.get_endpoint(merchant_id, endpoint_id)
        if not endpoint.active:
            raise ErrEndpointInactive
        events = await self._fanout.publish(
            merchant_id,
            WebhookEventType.PAYMENT_INTENT_SUCCEEDED,
            build_test_payment_intent(),
            endpoint_id=endpoint.id,
        )
        if not events:
            raise PayError("test event was not created", status_code=500, code="test-event-failed")
        return events[0]

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def list_events(
        self,
        merchant_id: str,
        *,
        event_type: str | None = None,
        endpoint_id: str | None = None,
        delivered: bool | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[WebhookEvent]:
        return await self._webhooks.list_events(
            merchant_id,
            event_type=event_type,
            endpoint_id=endpoint_id,
            delivered=delivered,
            limit=max(1, min(limit, MAX_EVENTS_PAGE)),
            offset=max(offset, 0),
        )

    async def get_event(self, merchant_id: str, event_id: str) -> WebhookEvent:
        event = await self._webhooks.get_event(event_id, merchant_id=merchant_id)
        if event is None:
            raise ErrEventNotFound
        return event

    async def retry_event(self, merchant_id: str, event_id: str) -> bool:
        """Deliver an undelivered event now, outside the retry schedule.

        Raises:
            PayError: 404 if unknown, 400 if already delivered.
            ExhaustedRetries: If the event used all of its attempts.
        """
        event = await self.get_event(merchant_id, event_id)
        if event.delivered:
            raise ErrEventAlreadyDelivered
        if event.attempts >= self._worker.max_attempts:
            raise ExhaustedRetries(event.id, event.attempts)

        await self._webhooks.update_event(event.id, next_retry_at=None, status_note=None)
        logger.info("Manual redelivery of webhook event %s", event.id)
        return await self._worker.deliver(event.id)
