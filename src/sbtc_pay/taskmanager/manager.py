"""Cron scheduling for the engine's background jobs.

Each registered ``CronJob`` gets its own asyncio task. A job never overlaps
itself: a ``run_now`` call made while the scheduled run is in flight waits
for it to finish, so two recovery sweeps cannot re-drive the same events.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sbtc_pay.metrics.collector import EngineMetrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CronJob:
    """A recurring background job."""

    handler: Callable[[], Awaitable[object]]
    period: float  # seconds
    name: str = ""
    run_on_start: bool = False


@dataclass
class _Slot:
    job: CronJob
    guard: asyncio.Lock = field(default_factory=asyncio.Lock)
    task: asyncio.Task[None] | None = None


class TaskManager:
    """Runs cron jobs until stopped.

    Usage::

        tm = TaskManager(metrics=engine_metrics)
        tm.register("redeliver_webhooks", CronJob(handler=..., period=15, run_on_start=True))
        await tm.start()
        ...
        await tm.stop()
    """

    def __init__(self, *, metrics: EngineMetrics | None = None) -> None:
        self._slots: dict[str, _Slot] = {}
        self._running = False
        self._metrics = metrics

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def jobs(self) -> dict[str, CronJob]:
        return {name: slot.job for name, slot in self._slots.items()}

    def register(self, name: str, job: CronJob) -> None:
        """Add *job* under *name*; it is scheduled at once if the manager runs."""
        slot = _Slot(job=replace(job, name=name))
        self._slots[name] = slot
        if self._running:
            self._spawn(slot)

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        for slot in self._slots.values():
            self._spawn(slot)
        logger.info("TaskManager started with %d jobs", len(self._slots))

    async def stop(self) -> None:
        """Cancel every job loop and wait for it to unwind."""
        if not self._running:
            return
        self._running = False
        tasks = [slot.task for slot in self._slots.values() if slot.task is not None]
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        for slot in self._slots.values():
            slot.task = None
        logger.info("TaskManager stopped")

    async def run_now(self, name: str) -> None:
        """Run job *name* once, outside its schedule.

        Raises:
            KeyError: If no job of that name is registered.
        """
        await self._run_once(self._slots[name])

    def _spawn(self, slot: _Slot) -> None:
        slot.task = asyncio.create_task(self._loop(slot), name=f"cron:{slot.job.name}")

    async def _run_once(self, slot: _Slot) -> None:
        async with slot.guard:
            if self._metrics is None:
                await slot.job.handler()
                return
            with self._metrics.track_cron(slot.job.name):
                await slot.job.handler()

    async def _loop(self, slot: _Slot) -> None:
        job = slot.job
        if not job.run_on_start:
            await asyncio.sleep(job.period)
        while self._running:
            try:
                await self._run_once(slot)
            except Exception:
                logger.exception("Cron job %r failed", job.name)
            await asyncio.sleep(job.period)
