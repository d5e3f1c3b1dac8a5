"""Engine services — matching, state transitions, chain intake, endpoint admin."""

from sbtc_pay.engine.services.endpoints import WebhookAdminService
from sbtc_pay.engine.services.matcher import MatchMethod, MatchResult, TransactionMatcher
from sbtc_pay.engine.services.receiver import BatchResult, ChainEventReceiver
from sbtc_pay.engine.services.transition import PaymentTransitionService

__all__ = [
    "BatchResult",
    "ChainEventReceiver",
    "MatchMethod",
    "MatchResult",
    "PaymentTransitionService",
    "TransactionMatcher",
    "WebhookAdminService",
]
