"""PayError — base exception class and the engine's error taxonomy."""

from __future__ import annotations


class PayError(Exception):
    """Base error for all payment engine operations.

    Attributes:
        message: Human-readable error description.
        status_code: Suggested HTTP status code.
        code: Machine-readable error code string.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 500,
        code: str = "pay-error",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class AuthError(PayError):
    """Missing or mismatched intake credential. The whole batch is rejected."""

    def __init__(self, message: str = "unauthorized", *, code: str = "unauthorized") -> None:
        super().__init__(message, status_code=401, code=code)


class ValidationError(PayError):
    """Malformed batch or transaction shape. The whole batch is rejected."""

    def __init__(self, message: str, *, code: str = "invalid-payload") -> None:
        super().__init__(message, status_code=400, code=code)


class MatchNotFound(PayError):
    """No payment intent matches a transaction. Logged, never surfaced."""

    def __init__(self, tx_id: str) -> None:
        super().__init__(
            f"no payment intent matches transaction {tx_id}",
            status_code=404,
            code="match-not-found",
        )
        self.tx_id = tx_id


class TransitionConflict(PayError):
    """The intent is terminal or moved under us. Treated as a no-op."""

    def __init__(self, intent_id: str, current_status: str | None = None) -> None:
        super().__init__(
            f"payment intent {intent_id} cannot transition from {current_status}",
            status_code=409,
            code="transition-conflict",
        )
        self.intent_id = intent_id
        self.current_status = current_status


class DeliveryFailure(PayError):
    """A webhook attempt failed (non-2xx, timeout or network error)."""

    def __init__(
        self,
        message: str,
        *,
        response_status: int | None = None,
        response_body: str | None = None,
    ) -> None:
        super().__init__(message, status_code=502, code="delivery-failure")
        self.response_status = response_status
        self.response_body = response_body


class ExhaustedRetries(PayError):
    """A webhook event used up its delivery attempts."""

    def __init__(self, event_id: str, attempts: int) -> None:
        super().__init__(
            f"webhook event {event_id} exhausted its retries after {attempts} attempts",
            status_code=400,
            code="retries-exhausted",
        )
        self.event_id = event_id
        self.attempts = attempts
