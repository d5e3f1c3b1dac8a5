"""Webhook fan-out — one persisted delivery obligation per subscribed endpoint."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sbtc_pay.engine.models.webhook_event import WebhookEvent
from sbtc_pay.notifications.events import build_payload, new_event_id

if TYPE_CHECKING:
    from sbtc_pay.engine.models.webhook_endpoint import WebhookEndpoint
    from sbtc_pay.engine.repository.merchants import MerchantRepository
    from sbtc_pay.engine.repository.webhooks import WebhookRepository
    from sbtc_pay.notifications.dispatcher import DeliveryDispatcher

logger = logging.getLogger(__name__)


class WebhookFanOut:
    """Creates webhook events for a merchant and hands them to the dispatcher."""

    def __init__(
        self,
        webhooks: WebhookRepository,
        merchants: MerchantRepository,
        dispatcher: DeliveryDispatcher | None = None,
    ) -> None:
        self._webhooks = webhooks
        self._merchants = merchants
        self._dispatcher = dispatcher

    async def publish(
        self,
        merchant_id: str,
        event_type: str,
        data: dict[str, Any],
        *,
        endpoint_id: str | None = None,
    ) -> list[WebhookEvent]:
        """Persist one event per target, then dispatch each for delivery.

        Targets are the merchant's active endpoints subscribed to
        *event_type*, or only *endpoint_id* when given (a merchant-initiated
        test send, which ignores the subscription list). A merchant with no
        endpoints falls back to its legacy webhook URL; with neither, nothing
        is created and no error is raised.
        """
        event_type = str(event_type)
        if endpoint_id is not None:
            endpoint = await self._webhooks.get_endpoint(endpoint_id, merchant_id=merchant_id)
            if endpoint is None or not endpoint.active:
                logger.info("Endpoint %s unavailable; no %s event created", endpoint_id, event_type)
                return []
            endpoints: list[WebhookEndpoint] = [endpoint]
        else:
            endpoints = await self._webhooks.list_active_endpoints(merchant_id, event_type)

        events: list[WebhookEvent] = []
        if endpoints:
            for endpoint in endpoints:
                events.append(await self._persist(merchant_id, event_type, data, endpoint.id))
        elif endpoint_id is None and await self._has_legacy_url(merchant_id):
            events.append(await self._persist(merchant_id, event_type, data, None))
        else:
            logger.debug("Merchant %s has no webhook targets for %s", merchant_id, event_type)
            return []

        for event in events:
            self._dispatch(event.id)
        logger.info("Created %d %s event(s) for merchant %s", len(events), event_type, merchant_id)
        return events

    async def _has_legacy_url(self, merchant_id: str) -> bool:
        # Only merchants that never registered an endpoint use the legacy URL
        if await self._webhooks.count_endpoints(merchant_id) > 0:
            return False
        merchant = await self._merchants.get_merchant(merchant_id)
        return merchant is not None and bool(merchant.webhook_url)

    async def _persist(
        self,
        merchant_id: str,
        event_type: str,
        data: dict[str, Any],
        endpoint_id: str | None,
    ) -> WebhookEvent:
        event_id = new_event_id()
        intent_id = data.get("id")
        event = WebhookEvent(
            id=event_id,
            merchant_id=merchant_id,
            webhook_endpoint_id=endpoint_id,
            event_type=event_type,
            payment_intent_id=intent_id if isinstance(intent_id, str) else None,
            payload=build_payload(event_id, event_type, data),
            delivered=False,
            attempts=0,
        )
        return await self._webhooks.insert_event(event)

    def _dispatch(self, event_id: str) -> None:
        if self._dispatcher is None:
            return
        if not self._dispatcher.dispatch(event_id):
            logger.debug("Event %s not dispatched; recovery sweep will pick it up", event_id)
