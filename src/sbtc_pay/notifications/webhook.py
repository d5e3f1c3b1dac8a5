"""Webhook delivery worker — signed POSTs with persisted, bounded retries.

One call to :meth:`DeliveryWorker.deliver` is one attempt. A failed attempt
stores ``next_retry_at`` on the event and asks the scheduler to try again
after ``2 ** (attempts - 1)`` seconds (1, 2, 4, 8). The fifth failure marks
the event ``retries_exhausted`` and nothing re-drives it automatically.
"""

from __future__ import annotations

import contextlib
import logging
from datetime import timedelta
from typing import TYPE_CHECKING

import httpx

from sbtc_pay.engine.models.webhook_event import DeliveryNote
from sbtc_pay.errors.pay_errors import DeliveryFailure, ExhaustedRetries
from sbtc_pay.notifications.events import LegacySingleUrl, PerEndpoint, encode_payload
from sbtc_pay.notifications.signature import (
    EVENT_ID_HEADER,
    EVENT_TYPE_HEADER,
    SIGNATURE_HEADER,
    sign,
)
from sbtc_pay.utils.clock import as_utc, utcnow

if TYPE_CHECKING:
    from collections.abc import Callable

    from sbtc_pay.cache.locks import LockManager
    from sbtc_pay.config.settings import WebhookConfig
    from sbtc_pay.engine.models.webhook_event import WebhookEvent
    from sbtc_pay.engine.repository.merchants import MerchantRepository
    from sbtc_pay.engine.repository.webhooks import WebhookRepository
    from sbtc_pay.metrics.collector import EngineMetrics
    from sbtc_pay.notifications.events import EndpointTarget

logger = logging.getLogger(__name__)

_ERR_NOT_CONNECTED = "DeliveryWorker is not connected. Call connect() first."

# Retry timers run on the loop clock and may wake just before the stored time
_DUE_SLACK = timedelta(milliseconds=250)


def retry_delay(attempts: int) -> int:
    """Seconds to wait before the next attempt, after *attempts* failures."""
    return 2 ** max(attempts - 1, 0)


class DeliveryWorker:
    """Delivers persisted webhook events to merchant endpoints."""

    def __init__(
        self,
        config: WebhookConfig,
        webhooks: WebhookRepository,
        merchants: MerchantRepository,
        locks: LockManager,
        *,
        scheduler: Callable[[str, float], object] | None = None,
        metrics: EngineMetrics | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._webhooks = webhooks
        self._merchants = merchants
        self._locks = locks
        self._scheduler = scheduler
        self._metrics = metrics
        self._client = client

    async def connect(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._config.timeout_seconds)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def set_scheduler(self, scheduler: Callable[[str, float], object]) -> None:
        self._scheduler = scheduler

    @property
    def max_attempts(self) -> int:
        return self._config.max_attempts

    async def deliver(self, event_id: str) -> bool:
        """Make one delivery attempt for *event_id*.

        Returns:
            True if the event is (now) delivered.
        """
        async with self._locks.hold(f"webhook_event:{event_id}"):
            event = await self._webhooks.get_event(event_id)
            if event is None:
                logger.warning("Webhook event %s not found", event_id)
                return False
            if event.delivered:
                return True
            if event.status_note is not None or event.attempts >= self.max_attempts:
                logger.debug("Webhook event %s is closed (%s)", event_id, event.status_note)
                return False
            retry_at = event.next_retry_at
            if retry_at is not None and as_utc(retry_at) > utcnow() + _DUE_SLACK:
                logger.debug("Webhook event %s backing off until %s", event_id, retry_at)
                return False

            target = await self._resolve_target(event)
            if target is None or (isinstance(target, PerEndpoint) and not target.active):
                await self._webhooks.update_event(
                    event_id,
                    delivered=False,
                    next_retry_at=None,
                    status_note=DeliveryNote.ENDPOINT_INACTIVE.value,
                )
                self._record("skipped")
                logger.info("Webhook event %s not sent: endpoint inactive", event_id)
                return False
            if isinstance(target, LegacySingleUrl) and not target.url:
                await self._webhooks.update_event(
                    event_id,
                    delivered=True,
                    next_retry_at=None,
                    status_note=DeliveryNote.NO_WEBHOOK_URL.value,
                )
                self._record("skipped")
                logger.info("Webhook event %s has no webhook URL to deliver to", event_id)
                return True

            return await self._attempt(event, target)

    async def _resolve_target(self, event: WebhookEvent) -> EndpointTarget | None:
        if event.webhook_endpoint_id is not None:
            endpoint = await self._webhooks.get_endpoint(event.webhook_endpoint_id)
            if endpoint is None:
                return None
            return PerEndpoint(
                endpoint_id=endpoint.id,
                url=endpoint.url,
                secret=endpoint.secret,
                active=endpoint.active,
            )
        merchant = await self._merchants.get_merchant(event.merchant_id)
        return LegacySingleUrl(
            merchant_id=event.merchant_id,
            url=merchant.webhook_url if merchant is not None else None,
            secret=(merchant.webhook_secret or "") if merchant is not None else "",
        )

    async def _attempt(self, event: WebhookEvent, target: EndpointTarget) -> bool:
        attempts = event.attempts + 1
        now = utcnow()
        ctx = self._metrics.track_delivery() if self._metrics else contextlib.nullcontext()
        try:
            with ctx:
                status, body = await self._post(event, target)
        except DeliveryFailure as exc:
            await self._record_failure(event, attempts, exc)
            return False

        await self._webhooks.update_event(
            event.id,
            delivered=True,
            attempts=attempts,
            last_attempted_at=now,
            next_retry_at=None,
            response_status=status,
            response_body=body,
        )
        self._record("delivered")
        logger.info("Webhook event %s delivered to %s (%d)", event.id, target.url, status)
        return True

    async def _post(self, event: WebhookEvent, target: EndpointTarget) -> tuple[int, str]:
        """POST the signed payload; return ``(status, truncated body)`` on 2xx.

        Raises:
            DeliveryFailure: On a non-2xx response, timeout or transport error.
        """
        if self._client is None:
            raise RuntimeError(_ERR_NOT_CONNECTED)
        assert target.url is not None
        body = encode_payload(event.payload)
        headers = {
            "Content-Type": "application/json",
            SIGNATURE_HEADER: sign(body, target.secret),
            EVENT_ID_HEADER: event.id,
            EVENT_TYPE_HEADER: event.event_type,
            "User-Agent": self._config.user_agent,
        }
        try:
            response = await self._client.post(
                target.url,
                content=body,
                headers=headers,
                timeout=self._config.timeout_seconds,
            )
        except httpx.TimeoutException as exc:
            msg = f"timed out after {self._config.timeout_seconds}s"
            raise DeliveryFailure(msg) from exc
        except httpx.HTTPError as exc:
            raise DeliveryFailure(f"transport error: {exc}") from exc

        text = response.text[: self._config.response_body_limit]
        if not response.is_success:
            raise DeliveryFailure(
                f"endpoint returned {response.status_code}",
                response_status=response.status_code,
                response_body=text,
            )
        return response.status_code, text

    async def _record_failure(
        self, event: WebhookEvent, attempts: int, exc: DeliveryFailure
    ) -> None:
        now = utcnow()
        values: dict[str, object] = {
            "delivered": False,
            "attempts": attempts,
            "last_attempted_at": now,
            "response_status": exc.response_status,
            "response_body": exc.response_body,
        }
        if attempts < self.max_attempts:
            delay = retry_delay(attempts)
            values["next_retry_at"] = now + timedelta(seconds=delay)
            await self._webhooks.update_event(event.id, **values)
            self._record("failed")
            logger.warning(
                "Webhook event %s attempt %d/%d failed: %s; retrying in %ds",
                event.id,
                attempts,
                self.max_attempts,
                exc.message,
                delay,
            )
            # Armed only once the failure is stored
            if self._scheduler is not None:
                self._scheduler(event.id, float(delay))
            return

        values["next_retry_at"] = None
        values["status_note"] = DeliveryNote.RETRIES_EXHAUSTED.value
        await self._webhooks.update_event(event.id, **values)
        self._record("exhausted")
        exhausted = ExhaustedRetries(event.id, attempts)
        logger.error("%s (last error: %s)", exhausted.message, exc.message)

    def _record(self, outcome: str) -> None:
        if self._metrics is not None:
            self._metrics.record_delivery(outcome)
