"""Shared stubs for poller tests: a virtual-clock timer host and fake transports."""

from __future__ import annotations

import asyncio
import itertools
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from rpc_poller.polling.timers import TimerHandle


class ManualTimerHost:
    """Timer host driven by an explicit virtual clock.

    Spawned coroutines become real asyncio tasks; :meth:`settle` yields to the
    loop until they have had a chance to run.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._ids = itertools.count(1)
        self._timers: Dict[TimerHandle, List[Any]] = {}
        self.scheduled: List[TimerHandle] = []
        self.cancelled: List[TimerHandle] = []
        self.tasks: List[asyncio.Task] = []

    def schedule_repeating(self, interval: timedelta, task: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(next(self._ids), interval)
        self._timers[handle] = [self.now + interval.total_seconds(), task]
        self.scheduled.append(handle)
        return handle

    def cancel(self, handle: TimerHandle) -> None:
        self.cancelled.append(handle)
        self._timers.pop(handle, None)

    def spawn(self, coro) -> None:
        self.tasks.append(asyncio.get_running_loop().create_task(coro))

    def is_active(self, handle: TimerHandle) -> bool:
        return handle in self._timers

    async def settle(self) -> None:
        for _ in range(10):
            await asyncio.sleep(0)

    async def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due timers in order."""

        target = self.now + seconds
        while True:
            due = [(entry[0], handle) for handle, entry in self._timers.items() if entry[0] <= target]
            if not due:
                break
            fire_at, handle = min(due, key=lambda item: (item[0], item[1].timer_id))
            self.now = fire_at
            entry = self._timers[handle]
            entry[0] = fire_at + handle.interval.total_seconds()
            entry[1]()
            await self.settle()
        self.now = target
        await self.settle()


class EagerTimerHost(ManualTimerHost):
    """Runs spawned coroutines to completion immediately when they never suspend."""

    def spawn(self, coro) -> None:
        try:
            coro.send(None)
        except StopIteration:
            return
        raise AssertionError("EagerTimerHost only supports coroutines that never suspend")


class StubTransport:
    """Returns scripted outcomes; exceptions in the script are raised."""

    def __init__(
        self,
        outcomes: Optional[List[Any]] = None,
        clock: Optional[Callable[[], float]] = None,
        poll_interval: timedelta = timedelta(seconds=7),
        default: Any = "0x1",
    ) -> None:
        self.poll_interval = poll_interval
        self.outcomes = list(outcomes or [])
        self.clock = clock
        self.default = default
        self.calls: List[Tuple[str, bytes, Optional[float]]] = []

    async def request(self, method: str, params: bytes) -> Any:
        self.calls.append((method, params, self.clock() if self.clock else None))
        outcome = self.outcomes.pop(0) if self.outcomes else self.default
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class GatedTransport:
    """Every call waits until the test resolves its future."""

    def __init__(self, poll_interval: timedelta = timedelta(seconds=7)) -> None:
        self.poll_interval = poll_interval
        self.gates: List[asyncio.Future] = []
        self.calls: List[Tuple[str, bytes]] = []

    async def request(self, method: str, params: bytes) -> Any:
        self.calls.append((method, params))
        gate = asyncio.get_running_loop().create_future()
        self.gates.append(gate)
        return await gate


class CountingEncoder:
    def __init__(self, fail: bool = False) -> None:
        self.calls = 0
        self.fail = fail

    def __call__(self, value: Any) -> bytes:
        self.calls += 1
        if self.fail:
            raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
        return repr(value).encode("utf-8")


class Recorder:
    """Response handler that remembers what it was given."""

    def __init__(self) -> None:
        self.responses: List[Any] = []

    def __call__(self, response: Any) -> None:
        self.responses.append(response)
