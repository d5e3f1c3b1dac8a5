"""Tests for the in-process delivery dispatcher."""

from __future__ import annotations

import asyncio

from sbtc_pay.notifications.dispatcher import DeliveryDispatcher


class _Recorder:
    def __init__(self, fail: bool = False) -> None:
        self.calls: list[str] = []
        self.fail = fail

    async def __call__(self, event_id: str) -> bool:
        self.calls.append(event_id)
        if self.fail:
            raise RuntimeError("boom")
        return True


class TestDispatch:
    async def test_unbound_dispatcher_refuses(self) -> None:
        dispatcher = DeliveryDispatcher()
        assert dispatcher.dispatch("evt_1") is False

    async def test_dispatch_delivers(self) -> None:
        deliver = _Recorder()
        dispatcher = DeliveryDispatcher(deliver)
        assert dispatcher.dispatch("evt_1") is True
        await dispatcher.drain()
        assert deliver.calls == ["evt_1"]
        assert dispatcher.pending == set()

    async def test_duplicate_pending_is_skipped(self) -> None:
        deliver = _Recorder()
        dispatcher = DeliveryDispatcher()
        dispatcher.bind(deliver)
        assert dispatcher.schedule("evt_1", 0.05) is True
        assert dispatcher.dispatch("evt_1") is False
        assert dispatcher.pending == {"evt_1"}
        await dispatcher.drain()
        assert deliver.calls == ["evt_1"]

    async def test_delivery_errors_are_logged(self, caplog) -> None:
        dispatcher = DeliveryDispatcher(_Recorder(fail=True))
        dispatcher.dispatch("evt_1")
        await dispatcher.drain()
        assert "evt_1" in caplog.text

    async def test_retry_can_be_armed_from_inside_delivery(self) -> None:
        dispatcher = DeliveryDispatcher()
        calls: list[str] = []

        async def deliver(event_id: str) -> bool:
            calls.append(event_id)
            if len(calls) < 3:
                assert dispatcher.schedule(event_id, 0.0) is True
            return True

        dispatcher.bind(deliver)
        dispatcher.dispatch("evt_1")
        await dispatcher.drain()
        assert calls == ["evt_1", "evt_1", "evt_1"]


class TestStop:
    async def test_stop_cancels_timers(self) -> None:
        deliver = _Recorder()
        dispatcher = DeliveryDispatcher(deliver)
        dispatcher.schedule("evt_1", 60)
        await asyncio.sleep(0)
        await dispatcher.stop()
        assert deliver.calls == []
        assert dispatcher.pending == set()

    async def test_stopped_dispatcher_refuses(self) -> None:
        dispatcher = DeliveryDispatcher(_Recorder())
        await dispatcher.stop()
        assert dispatcher.dispatch("evt_1") is False
