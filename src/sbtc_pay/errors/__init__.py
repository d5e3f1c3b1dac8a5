"""Error taxonomy for the payment engine."""

from sbtc_pay.errors.pay_errors import (
    AuthError,
    DeliveryFailure,
    ExhaustedRetries,
    MatchNotFound,
    PayError,
    TransitionConflict,
    ValidationError,
)

__all__ = [
    "AuthError",
    "DeliveryFailure",
    "ExhaustedRetries",
    "MatchNotFound",
    "PayError",
    "TransitionConflict",
    "ValidationError",
]
