"""API request/response Pydantic schemas.

These are the *API-layer* schemas: thin wrappers that define the HTTP
contract. Route code maps ORM objects onto them with ``model_validate``.
"""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - Pydantic needs this at runtime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from sbtc_pay.engine.models.webhook_event import WebhookEventType  # noqa: TC001


class ErrorResponse(BaseModel):
    """Standard error body ``{"code": "...", "message": "..."}``."""

    code: str
    message: str


# ---------------------------------------------------------------------------
# Chainhook intake
# ---------------------------------------------------------------------------


class ChainhookAck(BaseModel):
    """Acknowledgement returned to the chainhook sender."""

    success: bool = True
    processed: int = 0
    matched: int = 0
    transitioned: int = 0
    failed: int = 0
    rolled_back: int = 0


# ---------------------------------------------------------------------------
# Webhook endpoints
# ---------------------------------------------------------------------------


class WebhookEndpointCreateRequest(BaseModel):
    """POST /webhook-endpoints — register a delivery URL."""

    url: str = Field(min_length=1, max_length=2048)
    events: list[WebhookEventType] = Field(min_length=1)
    description: str | None = Field(default=None, max_length=500)


class WebhookEndpointResponse(BaseModel):
    """Serialised endpoint. The signing secret is never listed."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    merchant_id: str
    url: str
    events: list[str] = Field(default_factory=list, validation_alias="subscribed_events")
    description: str | None = None
    active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class WebhookEndpointCreateResponse(WebhookEndpointResponse):
    """Returned once on creation, including the signing secret."""

    secret: str


class SendTestEventResponse(BaseModel):
    message: str = "Test webhook sent successfully"
    event_id: str
    endpoint_url: str


# ---------------------------------------------------------------------------
# Webhook events
# ---------------------------------------------------------------------------


class WebhookEventResponse(BaseModel):
    """Serialised delivery record for the audit log."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    merchant_id: str
    webhook_endpoint_id: str | None = None
    event_type: str
    payment_intent_id: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    delivered: bool
    attempts: int
    last_attempted_at: datetime | None = None
    next_retry_at: datetime | None = None
    response_status: int | None = None
    response_body: str | None = None
    status_note: str | None = None
    created_at: datetime | None = None


class WebhookEventListResponse(BaseModel):
    data: list[WebhookEventResponse]
    limit: int
    offset: int


class RetryResponse(BaseModel):
    delivered: bool
    event_id: str
