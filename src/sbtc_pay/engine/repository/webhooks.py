"""Webhook endpoints & events repository."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, func, or_, select, update

from sbtc_pay.engine.models.webhook_endpoint import WebhookEndpoint
from sbtc_pay.engine.models.webhook_event import WebhookEvent

if TYPE_CHECKING:
    from datetime import datetime

    from sbtc_pay.datastore.client import Datastore


class WebhookRepository:
    """Data access layer for webhook endpoints and their delivery events."""

    def __init__(self, datastore: Datastore) -> None:
        self._ds = datastore

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def create_endpoint(self, endpoint: WebhookEndpoint) -> WebhookEndpoint:
        async with self._ds.session() as session:
            session.add(endpoint)
            await session.commit()
            await session.refresh(endpoint)
        return endpoint

    async def get_endpoint(
        self, endpoint_id: str, *, merchant_id: str | None = None
    ) -> WebhookEndpoint | None:
        """Find an endpoint by id, optionally scoped to its owning merchant."""
        async with self._ds.session() as session:
            stmt = select(WebhookEndpoint).where(WebhookEndpoint.id == endpoint_id)
            if merchant_id is not None:
                stmt = stmt.where(WebhookEndpoint.merchant_id == merchant_id)
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def list_endpoints(self, merchant_id: str) -> list[WebhookEndpoint]:
        async with self._ds.session() as session:
            stmt = (
                select(WebhookEndpoint)
                .where(WebhookEndpoint.merchant_id == merchant_id)
                .order_by(WebhookEndpoint.created_at.desc())
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def list_active_endpoints(
        self, merchant_id: str, event_type: str | None = None
    ) -> list[WebhookEndpoint]:
        """Active endpoints of *merchant_id*, narrowed to subscribers of *event_type*.

        Subscription membership is checked in Python so the JSON column works
        the same way on SQLite and PostgreSQL.
        """
        async with self._ds.session() as session:
            stmt = (
                select(WebhookEndpoint)
                .where(
                    WebhookEndpoint.merchant_id == merchant_id,
                    WebhookEndpoint.active.is_(True),
                )
                .order_by(WebhookEndpoint.created_at.asc())
            )
            result = await session.execute(stmt)
            endpoints = list(result.scalars().all())
        if event_type is None:
            return endpoints
        return [ep for ep in endpoints if ep.subscribes_to(event_type)]

    async def count_endpoints(self, merchant_id: str) -> int:
        async with self._ds.session() as session:
            stmt = select(func.count(WebhookEndpoint.id)).where(
                WebhookEndpoint.merchant_id == merchant_id
            )
            result = await session.execute(stmt)
            return result.scalar_one()

    async def set_endpoint_active(self, endpoint_id: str, active: bool) -> bool:
        """Flip an endpoint's active flag. Returns ``False`` if it does not exist."""
        async with self._ds.session() as session:
            result = await session.execute(
                update(WebhookEndpoint)
                .where(WebhookEndpoint.id == endpoint_id)
                .values(active=active)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount > 0  # type: ignore[union-attr]

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def insert_event(self, event: WebhookEvent) -> WebhookEvent:
        async with self._ds.session() as session:
            session.add(event)
            await session.commit()
            await session.refresh(event)
        return event

    async def get_event(
        self, event_id: str, *, merchant_id: str | None = None
    ) -> WebhookEvent | None:
        async with self._ds.session() as session:
            stmt = select(WebhookEvent).where(WebhookEvent.id == event_id)
            if merchant_id is not None:
                stmt = stmt.where(WebhookEvent.merchant_id == merchant_id)
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def update_event(self, event_id: str, **values: Any) -> bool:
        """Apply column updates to an event. Returns ``False`` if it does not exist."""
        async with self._ds.session() as session:
            result = await session.execute(
                update(WebhookEvent)
                .where(WebhookEvent.id == event_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount > 0  # type: ignore[union-attr]

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
        """List a merchant's events, newest first."""
        async with self._ds.session() as session:
            stmt = select(WebhookEvent).where(WebhookEvent.merchant_id == merchant_id)
            if event_type is not None:
                stmt = stmt.where(WebhookEvent.event_type == event_type)
            if endpoint_id is not None:
                stmt = stmt.where(WebhookEvent.webhook_endpoint_id == endpoint_id)
            if delivered is not None:
                stmt = stmt.where(WebhookEvent.delivered.is_(delivered))
            stmt = (
                stmt.order_by(WebhookEvent.created_at.desc(), WebhookEvent.id.desc())
                .offset(offset)
                .limit(limit)
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def list_events_for_intent(self, payment_intent_id: str) -> list[WebhookEvent]:
        async with self._ds.session() as session:
            stmt = (
                select(WebhookEvent)
                .where(WebhookEvent.payment_intent_id == payment_intent_id)
                .order_by(WebhookEvent.created_at.asc(), WebhookEvent.id.asc())
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def list_due_events(
        self,
        *,
        now: datetime,
        stale_before: datetime,
        max_attempts: int,
        limit: int = 100,
    ) -> list[WebhookEvent]:
        """Undelivered events the recovery sweep should re-drive.

        Two kinds qualify, both below *max_attempts* and without a terminal
        status note: events whose scheduled retry is due, and events that
        were never attempted and have been waiting since before *stale_before*.
        """
        async with self._ds.session() as session:
            due_retry = and_(
                WebhookEvent.next_retry_at.is_not(None),
                WebhookEvent.next_retry_at <= now,
            )
            never_attempted = and_(
                WebhookEvent.attempts == 0,
                WebhookEvent.next_retry_at.is_(None),
                WebhookEvent.created_at <= stale_before,
            )
            stmt = (
                select(WebhookEvent)
                .where(
                    WebhookEvent.delivered.is_(False),
                    WebhookEvent.status_note.is_(None),
                    WebhookEvent.attempts < max_attempts,
                    or_(due_retry, never_attempted),
                )
                .order_by(WebhookEvent.created_at.asc())
                .limit(limit)
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def count_events(
        self, *, delivered: bool | None = None, status_note: str | None = None
    ) -> int:
        async with self._ds.session() as session:
            stmt = select(func.count(WebhookEvent.id))
            if delivered is not None:
                stmt = stmt.where(WebhookEvent.delivered.is_(delivered))
            if status_note is not None:
                stmt = stmt.where(WebhookEvent.status_note == status_note)
            result = await session.execute(stmt)
            return result.scalar_one()
