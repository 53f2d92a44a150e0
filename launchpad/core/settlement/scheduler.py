"""
Fixed-delay task scheduling with group cancellation.

A schedule is a list of ``(delay_seconds, action)`` pairs. Every action of a
schedule runs as its own asyncio task measured from the moment the schedule
was started, so a slow action never pushes back the ones after it. Teardown
cancels every pending task at once.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List, Set, Tuple

logger = logging.getLogger(__name__)

ScheduledAction = Callable[[], Awaitable[None]]
ScheduleEntry = Tuple[float, ScheduledAction]


class TaskScheduler:
    """Runs scheduled actions on the current event loop."""

    def __init__(self, name: str = "scheduler"):
        self.name = name
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    @property
    def closed(self) -> bool:
        return self._closed

    def schedule(self, entries: Iterable[ScheduleEntry]) -> List[asyncio.Task]:
        """Start every entry; must be called from a running event loop."""
        if self._closed:
            raise RuntimeError(f"{self.name} is closed")

        tasks = []
        for delay, action in entries:
            task = asyncio.create_task(self._run_after(delay, action))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            tasks.append(task)
        return tasks

    async def _run_after(self, delay: float, action: ScheduledAction) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
        try:
            await action()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"{self.name}: scheduled action failed: {e}")

    def cancel_all(self) -> int:
        """Cancel every pending task; returns how many were cancelled."""
        cancelled = 0
        for task in list(self._tasks):
            if not task.done():
                task.cancel()
                cancelled += 1
        if cancelled:
            logger.debug(f"{self.name}: cancelled {cancelled} pending task(s)")
        return cancelled

    async def drain(self) -> None:
        """Wait until every scheduled task has finished or been cancelled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        self._closed = True
        self.cancel_all()
        await self.drain()
