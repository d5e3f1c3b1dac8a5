"""Chain event receiver — authenticate, validate and apply chainhook batches."""

from __future__ import annotations

import contextlib
import json
import logging
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

import pydantic

from sbtc_pay.chain.models import ChainhookPayload, to_chain_transactions
from sbtc_pay.errors.definitions import ErrInvalidJSON, ErrUnauthorized
from sbtc_pay.errors.pay_errors import ValidationError
from sbtc_pay.utils.crypto import bearer_matches

if TYPE_CHECKING:
    from sbtc_pay.chain.models import ChainTransaction
    from sbtc_pay.config.settings import ChainhookConfig
    from sbtc_pay.engine.services.matcher import TransactionMatcher
    from sbtc_pay.engine.services.transition import PaymentTransitionService
    from sbtc_pay.metrics.collector import EngineMetrics

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Per-batch counters returned to the chainhook sender."""

    processed: int = 0
    matched: int = 0
    transitioned: int = 0
    failed: int = 0
    rolled_back: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"success": True, **asdict(self)}


class ChainEventReceiver:
    """Feeds every transaction of a batch through matcher and transition.

    Transactions are processed one at a time in block order. An error on one
    transaction is logged and counted and the rest of the batch carries on.
    """

    def __init__(
        self,
        config: ChainhookConfig,
        matcher: TransactionMatcher,
        transition: PaymentTransitionService,
        *,
        metrics: EngineMetrics | None = None,
    ) -> None:
        self._config = config
        self._matcher = matcher
        self._transition = transition
        self._metrics = metrics

    def authenticate(self, authorization: str | None) -> None:
        """Check the shared bearer secret.

        Raises:
            AuthError: If the header is missing or does not match.
        """
        if not self._config.bearer_token:
            logger.warning("Chainhook bearer token is not configured; rejecting request")
            raise ErrUnauthorized
        if not bearer_matches(authorization, self._config.bearer_token):
            logger.warning("Unauthorized chainhook request")
            raise ErrUnauthorized

    @staticmethod
    def parse(body: bytes | str | dict[str, Any]) -> ChainhookPayload:
        """Decode and validate a batch.

        Raises:
            ValidationError: On malformed JSON or a payload of the wrong shape.
        """
        if isinstance(body, bytes | str):
            try:
                body = json.loads(body)
            except ValueError as exc:
                raise ErrInvalidJSON from exc
        try:
            return ChainhookPayload.model_validate(body)
        except pydantic.ValidationError as exc:
            msg = f"invalid chainhook payload: {exc.error_count()} error(s)"
            raise ValidationError(msg) from exc

    async def handle(
        self, authorization: str | None, body: bytes | str | dict[str, Any]
    ) -> BatchResult:
        """Authenticate, parse and process one inbound batch."""
        self.authenticate(authorization)
        return await self.process(self.parse(body))

    async def process(self, payload: ChainhookPayload) -> BatchResult:
        result = BatchResult()
        ctx = self._metrics.track_batch() if self._metrics else contextlib.nullcontext()
        with ctx:
            for block in payload.rollback:
                result.rolled_back += 1
                logger.warning(
                    "Rollback of block %d (%s) with %d transaction(s) received; not applied",
                    block.block_identifier.index,
                    block.block_identifier.hash,
                    len(block.transactions),
                )
            for block in payload.apply:
                for tx in to_chain_transactions(block):
                    result.processed += 1
                    try:
                        outcome = await self.process_transaction(tx)
                    except Exception:
                        result.failed += 1
                        self._record("error")
                        logger.exception("Failed to process transaction %s", tx.tx_id)
                        continue
                    self._record(outcome)
                    if outcome != "unmatched":
                        result.matched += 1
                    if outcome == "transitioned":
                        result.transitioned += 1

        logger.info(
            "Chainhook batch: %d processed, %d matched, %d transitioned, %d failed",
            result.processed,
            result.matched,
            result.transitioned,
            result.failed,
        )
        return result

    async def process_transaction(self, tx: ChainTransaction) -> str:
        """Match and settle a single transaction.

        Returns:
            ``"unmatched"``, ``"noop"`` (matched an already settled intent)
            or ``"transitioned"``.
        """
        match = await self._matcher.match(tx)
        if match is None:
            return "unmatched"
        updated = await self._transition.apply(match.intent, tx)
        return "noop" if updated is None else "transitioned"

    def _record(self, outcome: str) -> None:
        if self._metrics is not None:
            self._metrics.record_chain_transaction(outcome)
