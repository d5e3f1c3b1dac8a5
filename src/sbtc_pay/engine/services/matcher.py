"""Transaction matcher — find the payment intent a chain transaction settles.

Matching runs in two steps:

1. **Exact** — an intent already bound to the transaction id. Re-delivered
   chain events always land here and never reopen matching.
2. **Heuristic** — open intents created within the match window, oldest
   first. A candidate must pass, in order: recency, asset (the transaction
   moved the payment token), amount (within ``max(amount * ratio, floor)``)
   and recipient (the intent's expected ``recipient_address`` metadata).
   Amount and recipient checks are skipped when either side is unknown.
   The first candidate that passes wins; there is no scoring between
   candidates.

If evaluating a candidate raises, that candidate alone is judged by
recency within the shorter fallback window.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from sbtc_pay.chain.models import extract_token_transfer
from sbtc_pay.engine.models.payment_intent import OPEN_STATUSES
from sbtc_pay.errors.pay_errors import MatchNotFound
from sbtc_pay.utils.clock import as_utc, utcnow

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from sbtc_pay.chain.models import ChainTransaction, TokenTransfer
    from sbtc_pay.config.settings import ChainhookConfig
    from sbtc_pay.engine.models.payment_intent import PaymentIntent
    from sbtc_pay.engine.repository.merchants import MerchantRepository
    from sbtc_pay.engine.repository.payments import PaymentRepository
    from sbtc_pay.metrics.collector import EngineMetrics

logger = logging.getLogger(__name__)

RECIPIENT_METADATA_KEY = "recipient_address"


class MatchMethod(enum.StrEnum):
    EXACT = "exact"
    HEURISTIC = "heuristic"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class MatchResult:
    intent: PaymentIntent
    method: MatchMethod


def amount_within_tolerance(expected: int, actual: int, *, ratio: float, floor: int) -> bool:
    """``|actual - expected| <= max(expected * ratio, floor)``."""
    return abs(actual - expected) <= max(expected * ratio, floor)


class TransactionMatcher:
    """Maps a :class:`ChainTransaction` to at most one payment intent."""

    def __init__(
        self,
        payments: PaymentRepository,
        merchants: MerchantRepository,
        config: ChainhookConfig,
        *,
        metrics: EngineMetrics | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._payments = payments
        self._merchants = merchants
        self._config = config
        self._metrics = metrics
        self._clock = clock

    @property
    def match_window(self) -> timedelta:
        return timedelta(seconds=self._config.match_window_seconds)

    @property
    def fallback_window(self) -> timedelta:
        return timedelta(seconds=self._config.fallback_window_seconds)

    async def match(self, tx: ChainTransaction) -> MatchResult | None:
        """Find the intent *tx* settles, or ``None`` (logged, not raised)."""
        intent = await self._payments.find_by_tx_id(tx.tx_id)
        if intent is not None:
            return self._found(intent, MatchMethod.EXACT, tx)

        # A failed transaction settled nothing, so only an exact binding counts
        if not tx.success:
            logger.info("%s (failed transaction)", MatchNotFound(tx.tx_id).message)
            return None

        now = self._clock()
        transfer = extract_token_transfer(tx, self._config.token_marker)
        merchant_id = await self._merchant_scope(transfer)
        candidates = await self._payments.find_candidates(
            merchant_id, OPEN_STATUSES, now - self.match_window
        )

        for candidate in candidates:
            try:
                accepted = self._evaluate(candidate, tx, now)
            except Exception:
                logger.exception(
                    "Heuristic evaluation of %s against %s failed; using recency fallback",
                    candidate.id,
                    tx.tx_id,
                )
                if self._created_within(candidate, now, self.fallback_window):
                    return self._found(candidate, MatchMethod.FALLBACK, tx)
                continue
            if accepted:
                return self._found(candidate, MatchMethod.HEURISTIC, tx)

        logger.info("%s (%d candidates)", MatchNotFound(tx.tx_id).message, len(candidates))
        return None

    async def _merchant_scope(self, transfer: TokenTransfer | None) -> str | None:
        if transfer is None or transfer.recipient is None:
            return None
        merchant = await self._merchants.find_by_recipient(transfer.recipient)
        return merchant.id if merchant is not None else None

    def _evaluate(self, intent: PaymentIntent, tx: ChainTransaction, now: datetime) -> bool:
        if not self._created_within(intent, now, self.match_window):
            return False

        transfer = extract_token_transfer(tx, self._config.token_marker)
        if transfer is None:
            return False

        if transfer.amount is not None and not amount_within_tolerance(
            intent.amount,
            transfer.amount,
            ratio=self._config.amount_tolerance_ratio,
            floor=self._config.amount_tolerance_floor,
        ):
            return False

        expected_recipient = intent.get_metadata(RECIPIENT_METADATA_KEY)
        return not (
            expected_recipient
            and transfer.recipient is not None
            and expected_recipient != transfer.recipient
        )

    @staticmethod
    def _created_within(intent: PaymentIntent, now: datetime, window: timedelta) -> bool:
        return now - as_utc(intent.created_at) <= window

    def _found(
        self, intent: PaymentIntent, method: MatchMethod, tx: ChainTransaction
    ) -> MatchResult:
        logger.info("Matched %s to payment intent %s (%s)", tx.tx_id, intent.id, method)
        if self._metrics is not None:
            self._metrics.record_match(method)
        return MatchResult(intent=intent, method=method)
