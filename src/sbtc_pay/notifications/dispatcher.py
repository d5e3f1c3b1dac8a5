"""Background hand-off of webhook events to the delivery worker.

The dispatcher is an in-process optimisation: it delivers new events right
away and fires retry timers on time. Retry state itself is persisted on the
event row (``next_retry_at``), and the recovery sweep re-drives anything a
restart dropped, so losing these tasks loses latency, not deliveries.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class DeliveryDispatcher:
    """Runs deliveries on asyncio tasks, at most one pending task per event id.

    Usage::

        dispatcher = DeliveryDispatcher()
        dispatcher.bind(worker.deliver)
        dispatcher.dispatch(event.id)
        ...
        await dispatcher.stop()
    """

    def __init__(self, deliver: Callable[[str], Awaitable[bool]] | None = None) -> None:
        self._deliver = deliver
        self._pending: dict[str, asyncio.Task[None]] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self._running = True

    def bind(self, deliver: Callable[[str], Awaitable[bool]]) -> None:
        """Attach the delivery coroutine (the worker is built after the dispatcher)."""
        self._deliver = deliver

    @property
    def pending(self) -> set[str]:
        """Event ids waiting for their (re)delivery to start."""
        return set(self._pending)

    def dispatch(self, event_id: str) -> bool:
        """Deliver *event_id* as soon as possible."""
        return self.schedule(event_id, 0.0)

    def schedule(self, event_id: str, delay: float) -> bool:
        """Deliver *event_id* after *delay* seconds.

        Returns:
            False if the dispatcher is stopped or the event already has a
            pending task; the existing task is left untouched.
        """
        if not self._running or self._deliver is None:
            return False
        if event_id in self._pending:
            return False
        task = asyncio.create_task(self._run(event_id, delay), name=f"webhook:{event_id}")
        self._pending[event_id] = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def _run(self, event_id: str, delay: float) -> None:
        try:
            if delay > 0:
                await asyncio.sleep(delay)
        finally:
            # Free the slot before delivering so the worker can arm the next retry
            if self._pending.get(event_id) is asyncio.current_task():
                del self._pending[event_id]
        assert self._deliver is not None
        try:
            await self._deliver(event_id)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Webhook delivery task for %s failed", event_id)

    async def drain(self) -> None:
        """Wait until every task, including retries spawned meanwhile, has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def stop(self) -> None:
        """Cancel pending and in-flight tasks."""
        self._running = False
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._pending.clear()
        self._tasks.clear()
