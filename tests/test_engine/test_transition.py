"""Tests for the payment state transition service."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from sbtc_pay.engine.services.transition import PaymentTransitionService, chain_metadata
from sbtc_pay.metrics.collector import EngineMetrics


@pytest.fixture
def fanout():
    mock = AsyncMock()
    mock.publish.return_value = []
    return mock


@pytest.fixture
def transition(payments, locks, fanout):
    return PaymentTransitionService(payments, locks, fanout)


class TestChainMetadata:
    def test_success_fields(self, make_tx) -> None:
        patch = chain_metadata(make_tx())
        assert patch["block_height"] == "150000"
        assert patch["block_hash"] == "0xblockhash"
        assert patch["block_timestamp"] == "1700000000"
        assert patch["events_count"] == "1"
        assert patch["fee"] == "180"
        assert patch["mutated_assets"].endswith("::sbtc-token")
        assert "processed_at" in patch
        assert "failure_reason" not in patch
        assert all(isinstance(v, str) for v in patch.values())

    def test_failure_reason_from_result(self, make_tx) -> None:
        patch = chain_metadata(make_tx(success=False, result="(err u1)"))
        assert patch["failure_reason"] == "(err u1)"

    def test_failure_reason_default(self, make_tx) -> None:
        tx = make_tx(success=False)
        tx.result_description = None
        assert chain_metadata(tx)["failure_reason"] == "Transaction failed"


class TestApply:
    async def test_success_transition(
        self, transition, payments, fanout, make_intent, make_tx
    ) -> None:
        intent = await make_intent(metadata_={"order": "42"})

        updated = await transition.apply(intent, make_tx("0xpaid"))

        assert updated.status == "succeeded"
        assert updated.tx_id == "0xpaid"
        stored = await payments.get_intent(intent.id)
        assert stored.status == "succeeded"
        assert stored.metadata_["order"] == "42"
        assert stored.metadata_["block_height"] == "150000"

        fanout.publish.assert_awaited_once()
        merchant_id, event_type, data = fanout.publish.await_args.args
        assert merchant_id == intent.merchant_id
        assert event_type == "payment_intent.succeeded"
        assert data["id"] == intent.id
        assert data["status"] == "succeeded"
        assert data["tx_id"] == "0xpaid"

    async def test_failed_transition(
        self, transition, payments, fanout, make_intent, make_tx
    ) -> None:
        intent = await make_intent(status="pending")

        updated = await transition.apply(intent, make_tx("0xbad", success=False, result="(err u1)"))

        assert updated.status == "failed"
        assert updated.metadata_["failure_reason"] == "(err u1)"
        assert fanout.publish.await_args.args[1] == "payment_intent.failed"

    async def test_terminal_intent_is_untouched(
        self, transition, payments, fanout, make_intent, make_tx
    ) -> None:
        intent = await make_intent(status="succeeded", tx_id="0xfirst")

        assert await transition.apply(intent, make_tx("0xsecond", success=False)) is None

        stored = await payments.get_intent(intent.id)
        assert stored.status == "succeeded"
        assert stored.tx_id == "0xfirst"
        fanout.publish.assert_not_awaited()

    async def test_stale_copy_is_reread(
        self, transition, payments, fanout, make_intent, make_tx
    ) -> None:
        intent = await make_intent()
        await transition.apply(intent, make_tx("0xone"))

        # *intent* still says "created"; the stored row is terminal
        assert await transition.apply(intent, make_tx("0xtwo")) is None
        assert (await payments.get_intent(intent.id)).tx_id == "0xone"
        assert fanout.publish.await_count == 1

    async def test_concurrent_transitions_have_one_winner(
        self, transition, payments, fanout, make_intent, make_tx
    ) -> None:
        intent = await make_intent()

        results = await asyncio.gather(
            transition.apply(intent, make_tx("0xa")),
            transition.apply(intent, make_tx("0xb", success=False)),
        )

        winners = [r for r in results if r is not None]
        assert len(winners) == 1
        stored = await payments.get_intent(intent.id)
        assert stored.status == winners[0].status
        assert stored.tx_id == winners[0].tx_id
        assert fanout.publish.await_count == 1

    async def test_fanout_error_keeps_transition(
        self, transition, payments, fanout, make_intent, make_tx, caplog
    ) -> None:
        fanout.publish.side_effect = RuntimeError("webhook store down")
        intent = await make_intent()

        updated = await transition.apply(intent, make_tx("0xpaid"))

        assert updated.status == "succeeded"
        assert (await payments.get_intent(intent.id)).status == "succeeded"
        assert "Webhook fan-out" in caplog.text

    async def test_without_fanout(self, payments, locks, make_intent, make_tx) -> None:
        transition = PaymentTransitionService(payments, locks)
        intent = await make_intent()
        updated = await transition.apply(intent, make_tx())
        assert updated.status == "succeeded"

    async def test_records_transition_metric(self, payments, locks, make_intent, make_tx) -> None:
        metrics = EngineMetrics()
        transition = PaymentTransitionService(payments, locks, metrics=metrics)
        await transition.apply(await make_intent(), make_tx())
        value = metrics.registry.get_sample_value(
            "sbtc_pay_transitions_total", {"status": "succeeded"}
        )
        assert value == 1.0
