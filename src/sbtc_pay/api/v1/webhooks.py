"""Merchant webhook management — endpoints, event audit log, redelivery."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from sbtc_pay.api.dependencies import get_engine, require_admin
from sbtc_pay.api.v1.schemas import (
    RetryResponse,
    SendTestEventResponse,
    WebhookEndpointCreateRequest,
    WebhookEndpointCreateResponse,
    WebhookEndpointResponse,
    WebhookEventListResponse,
    WebhookEventResponse,
)
from sbtc_pay.engine.client import PayEngine  # noqa: TC001

router = APIRouter(
    prefix="/merchants/{merchant_id}",
    tags=["webhooks"],
    dependencies=[Depends(require_admin)],
)

# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/webhook-endpoints", status_code=201, response_model=WebhookEndpointCreateResponse)
async def create_webhook_endpoint(
    merchant_id: str,
    body: WebhookEndpointCreateRequest,
    engine: Annotated[PayEngine, Depends(get_engine)],
) -> WebhookEndpointCreateResponse:
    """Register an endpoint. The signing secret is only returned here."""
    endpoint = await engine.webhook_admin.register_endpoint(
        merchant_id,
        body.url,
        [str(event) for event in body.events],
        description=body.description,
    )
    return WebhookEndpointCreateResponse.model_validate(endpoint)


@router.get("/webhook-endpoints", response_model=list[WebhookEndpointResponse])
async def list_webhook_endpoints(
    merchant_id: str,
    engine: Annotated[PayEngine, Depends(get_engine)],
) -> list[WebhookEndpointResponse]:
    endpoints = await engine.webhook_admin.list_endpoints(merchant_id)
    return [WebhookEndpointResponse.model_validate(ep) for ep in endpoints]


@router.delete("/webhook-endpoints/{endpoint_id}", response_model=WebhookEndpointResponse)
async def deactivate_webhook_endpoint(
    merchant_id: str,
    endpoint_id: str,
    engine: Annotated[PayEngine, Depends(get_engine)],
) -> WebhookEndpointResponse:
    """Disable an endpoint; its delivery history is kept."""
    endpoint = await engine.webhook_admin.deactivate_endpoint(merchant_id, endpoint_id)
    return WebhookEndpointResponse.model_validate(endpoint)


@router.post("/webhook-endpoints/{endpoint_id}/test", response_model=SendTestEventResponse)
async def send_test_webhook(
    merchant_id: str,
    endpoint_id: str,
    engine: Annotated[PayEngine, Depends(get_engine)],
) -> SendTestEventResponse:
    admin = engine.webhook_admin
    endpoint = await admin.get_endpoint(merchant_id, endpoint_id)
    event = await admin.send_test_event(merchant_id, endpoint_id)
    return SendTestEventResponse(event_id=event.id, endpoint_url=endpoint.url)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@router.get("/webhook-events", response_model=WebhookEventListResponse)
async def list_webhook_events(
    merchant_id: str,
    engine: Annotated[PayEngine, Depends(get_engine)],
    event_type: str | None = None,
    endpoint_id: str | None = None,
    delivered: bool | None = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> WebhookEventListResponse:
    events = await engine.webhook_admin.list_events(
        merchant_id,
        event_type=event_type,
        endpoint_id=endpoint_id,
        delivered=delivered,
        limit=limit,
        offset=offset,
    )
    return WebhookEventListResponse(
        data=[WebhookEventResponse.model_validate(ev) for ev in events],
        limit=limit,
        offset=offset,
    )


@router.get("/webhook-events/{event_id}", response_model=WebhookEventResponse)
async def get_webhook_event(
    merchant_id: str,
    event_id: str,
    engine: Annotated[PayEngine, Depends(get_engine)],
) -> WebhookEventResponse:
    event = await engine.webhook_admin.get_event(merchant_id, event_id)
    return WebhookEventResponse.model_validate(event)


@router.post("/webhook-events/{event_id}/retry", response_model=RetryResponse)
async def retry_webhook_event(
    merchant_id: str,
    event_id: str,
    engine: Annotated[PayEngine, Depends(get_engine)],
) -> RetryResponse:
    """Deliver an undelivered event now."""
    delivered = await engine.webhook_admin.retry_event(merchant_id, event_id)
    return RetryResponse(delivered=delivered, event_id=event_id)
