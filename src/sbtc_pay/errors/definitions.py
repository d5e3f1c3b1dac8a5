"""Pre-built error instances raised by the engine and the API."""

from __future__ import annotations

from sbtc_pay.errors.pay_errors import AuthError, PayError, ValidationError

# -- Authentication --------------------------------------------------------

ErrUnauthorized = AuthError("unauthorized")
ErrAdminRequired = AuthError("admin authentication required", code="admin-required")

# -- Validation ------------------------------------------------------------

ErrInvalidJSON = ValidationError("request body is not valid JSON", code="invalid-json")
ErrInvalidWebhookURL = ValidationError("webhook url must be http(s)", code="invalid-webhook-url")
ErrNoEventTypes = ValidationError(
    "at least one event type must be subscribed", code="missing-event-types"
)

# -- Not Found -------------------------------------------------------------

ErrPaymentIntentNotFound = PayError(
    "payment intent not found", status_code=404, code="payment-intent-not-found"
)
ErrMerchantNotFound = PayError("merchant not found", status_code=404, code="merchant-not-found")
ErrEndpointNotFound = PayError(
    "webhook endpoint not found", status_code=404, code="webhook-endpoint-not-found"
)
ErrEventNotFound = PayError(
    "webhook event not found", status_code=404, code="webhook-event-not-found"
)

# -- Webhooks --------------------------------------------------------------

ErrEndpointInactive = PayError(
    "webhook endpoint is disabled", status_code=400, code="webhook-endpoint-inactive"
)
ErrEventAlreadyDelivered = PayError(
    "webhook event already delivered successfully",
    status_code=400,
    code="webhook-event-delivered",
)

# -- Locks -----------------------------------------------------------------

ErrLockTimeout = PayError("timed out waiting for record lock", status_code=503, code="lock-timeout")
