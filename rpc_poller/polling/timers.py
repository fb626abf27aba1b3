"""Timer host abstraction used to drive poll ticks."""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Coroutine, Dict, List, Optional, Protocol, Set


@dataclass(frozen=True)
class TimerHandle:
    """Opaque identity of a recurring timer."""

    timer_id: int
    interval: timedelta


class TimerHost(Protocol):
    """Scheduling primitives a poll schedule relies on."""

    def schedule_repeating(self, interval: timedelta, task: Callable[[], None]) -> TimerHandle:
        """Call ``task`` every ``interval`` until the handle is cancelled."""

    def cancel(self, handle: TimerHandle) -> None:
        """Stop a recurring timer; cancelling twice is a no-op."""

    def spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        """Run a one-off coroutine without waiting for it."""


class AsyncioTimerHost:
    """Timer host running on an asyncio event loop.

    Every recurring timer is a task that sleeps for its interval and then
    calls the task function synchronously, so the function must not block.
    """

    def __init__(
        self,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._loop = loop
        self.logger = logger or logging.getLogger(__name__)
        self._ids = itertools.count(1)
        self._timers: Dict[TimerHandle, asyncio.Task] = {}
        self._spawned: Set[asyncio.Task] = set()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def schedule_repeating(self, interval: timedelta, task: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(next(self._ids), interval)
        self._timers[handle] = self.loop.create_task(self._repeat(handle, task))
        return handle

    async def _repeat(self, handle: TimerHandle, task: Callable[[], None]) -> None:
        seconds = handle.interval.total_seconds()
        while True:
            await asyncio.sleep(seconds)
            try:
                task()
            except Exception:
                self.logger.exception(
                    "Timer task raised", extra={"event": "timer_task_failure", "timer_id": handle.timer_id}
                )

    def cancel(self, handle: TimerHandle) -> None:
        timer = self._timers.pop(handle, None)
        if timer is not None:
            timer.cancel()

    def spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        spawned = self.loop.create_task(coro)
        self._spawned.add(spawned)
        spawned.add_done_callback(self._spawned.discard)

    def active_timers(self) -> List[TimerHandle]:
        return list(self._timers)

    def pending_tasks(self) -> int:
        return len(self._spawned)

    async def drain(self) -> None:
        """Wait for every spawned one-off task to finish."""

        while self._spawned:
            await asyncio.gather(*list(self._spawned), return_exceptions=True)

    def shutdown(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        for spawned in list(self._spawned):
            spawned.cancel()


__all__ = ["TimerHandle", "TimerHost", "AsyncioTimerHost"]
