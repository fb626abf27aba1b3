"""Recurring poll schedule for a single RPC method.

A :class:`PollSchedule` owns the timer handle and the success counter of one
poller. Every tick resolves the client reference, fetches the cached params,
awaits the call and hands successful responses to the user handler. Failures
stay inside the tick: they are logged and counted, and the schedule keeps
running until it is stopped or the success limit is reached.

Ticks are not serialized by default. A slow call does not delay the next
tick, so several calls of the same schedule can be in flight at once and can
complete out of order. Pass :class:`SingleFlight` to skip ticks while a call
is outstanding.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Callable, Dict, Optional, Protocol

from rpc_poller.data.client_ref import ClientRef
from rpc_poller.data.params import ParamCache
from rpc_poller.errors import EncodeError, PollerStateError, TransportError
from rpc_poller.infra.metrics import MetricsSink

from .timers import TimerHandle, TimerHost

UNBOUNDED = sys.maxsize

ResponseHandler = Callable[[Any], None]


class PollState(str, Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    STOPPED = "stopped"


@dataclass
class PollerConfig:
    """Configuration and progress of one poller."""

    method: str
    poll_interval: timedelta
    limit: int = UNBOUNDED
    poll_count: int = 0

    @property
    def bounded(self) -> bool:
        return self.limit != UNBOUNDED

    def limit_reached(self) -> bool:
        return self.poll_count >= self.limit


class FlightPolicy(Protocol):
    """Decides whether a tick may issue a call while others are outstanding."""

    in_flight: int

    def try_acquire(self) -> bool:
        """Reserve a slot for a new call; ``False`` skips the tick."""

    def release(self) -> None:
        """Free the slot taken by a finished call."""


class OverlappingFlights:
    """Never refuses a call; only tracks how many are outstanding."""

    def __init__(self) -> None:
        self.in_flight = 0

    def try_acquire(self) -> bool:
        self.in_flight += 1
        return True

    def release(self) -> None:
        self.in_flight -= 1


class SingleFlight:
    """Allows at most one outstanding call per schedule."""

    def __init__(self) -> None:
        self.in_flight = 0

    def try_acquire(self) -> bool:
        if self.in_flight:
            return False
        self.in_flight = 1
        return True

    def release(self) -> None:
        self.in_flight = 0


class PollSchedule:
    """Runtime state of a started poller."""

    def __init__(
        self,
        client: ClientRef,
        params: ParamCache,
        config: PollerConfig,
        handler: ResponseHandler,
        timer_host: TimerHost,
        flight_policy: Optional[FlightPolicy] = None,
        metrics: Optional[MetricsSink] = None,
        discard_after_stop: bool = False,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.client = client
        self.params = params
        self.config = config
        self.handler = handler
        self.timer_host = timer_host
        self.flights = flight_policy or OverlappingFlights()
        self.metrics = metrics
        self.discard_after_stop = discard_after_stop
        self.logger = logger or logging.getLogger(__name__)
        self._state = PollState.IDLE
        self._handle: Optional[TimerHandle] = None

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def poll_count(self) -> int:
        return self.config.poll_count

    @property
    def handle(self) -> Optional[TimerHandle]:
        return self._handle

    @property
    def in_flight(self) -> int:
        return self.flights.in_flight

    def start(self) -> TimerHandle:
        """Run the first tick now and register the recurring timer.

        Raises :class:`ClientUnavailable` without issuing any call when the
        client can no longer be resolved.
        """

        if self._state is not PollState.IDLE:
            raise PollerStateError(f"Cannot start a poller in state {self._state.value}")
        self.client.resolve_or_raise()

        self._state = PollState.SCHEDULED
        try:
            self.tick()
        except Exception:
            # Nothing was spawned, so the schedule can still be started later.
            self._state = PollState.IDLE
            raise
        self.logger.info(
            "Starting poller for %s", self.config.method,
            extra={
                "event": "poll_started",
                "method": self.config.method,
                "interval_seconds": self.config.poll_interval.total_seconds(),
                "limit": self.config.limit if self.config.bounded else None,
            },
        )

        handle = self.timer_host.schedule_repeating(self.config.poll_interval, self.tick)
        if self._state is PollState.STOPPED:
            # The first tick already hit the limit before the timer existed.
            self.timer_host.cancel(handle)
        else:
            self._handle = handle
        return handle

    def stop(self) -> None:
        """Cancel future ticks. Calls already in flight still complete."""

        self._terminate("poll_stopped")

    def tick(self) -> None:
        """Spawn one poll; never blocks the caller."""

        if self._state is not PollState.SCHEDULED:
            return
        poll = self.poll()
        try:
            self.timer_host.spawn(poll)
        except Exception:
            poll.close()
            raise

    async def poll(self) -> None:
        client = self.client.resolve()
        if client is None:
            self.logger.warning(
                "Client has been dropped, skipping poll of %s", self.config.method,
                extra={"event": "client_unavailable", "method": self.config.method},
            )
            self._incr("client_unavailable_total")
            return

        if not self.flights.try_acquire():
            self.logger.debug(
                "Previous call still in flight, skipping poll of %s", self.config.method,
                extra={"event": "poll_skipped", "method": self.config.method},
            )
            self._incr("poll_skipped_total")
            return

        try:
            try:
                params = self.params.get()
            except EncodeError as exc:
                self.logger.warning(
                    "Failed to get params: %s", exc,
                    extra={"event": "encode_failure", "method": self.config.method},
                )
                self._incr("encode_failure_total")
                return

            try:
                response = await client.request(self.config.method, params)
            except TransportError as exc:
                self.logger.warning(
                    "Request failed: %s", exc,
                    extra={"event": "poll_failure", "method": self.config.method, "code": exc.code},
                )
                self._incr("poll_failure_total")
                return
            except Exception:
                self.logger.exception(
                    "Request raised unexpectedly",
                    extra={"event": "poll_failure", "method": self.config.method},
                )
                self._incr("poll_failure_total")
                return
        finally:
            self.flights.release()

        self._complete(response)

    def _complete(self, response: Any) -> None:
        if self._state is PollState.STOPPED and self.discard_after_stop:
            self.logger.debug(
                "Discarding response received after stop",
                extra={"event": "poll_discarded", "method": self.config.method},
            )
            return

        self.config.poll_count += 1
        self._incr("poll_success_total")
        self.logger.debug(
            "Poll succeeded",
            extra={"event": "poll_success", "method": self.config.method, "poll_count": self.config.poll_count},
        )
        try:
            self.handler(response)
        except Exception:
            self.logger.exception(
                "Response handler raised",
                extra={"event": "handler_failure", "method": self.config.method},
            )
            self._incr("handler_failure_total")

        if self.config.limit_reached():
            self._terminate("poll_limit_reached")

    def _terminate(self, event: str) -> None:
        if self._state is PollState.STOPPED:
            return
        self._state = PollState.STOPPED
        if self._handle is not None:
            self.timer_host.cancel(self._handle)
            self._handle = None
        self.logger.info(
            "Poller for %s stopped", self.config.method,
            extra={"event": event, "method": self.config.method, "poll_count": self.config.poll_count},
        )

    def _incr(self, name: str) -> None:
        if self.metrics is not None:
            self.metrics.incr(name)

    def snapshot(self) -> Dict[str, Any]:
        """Return a JSON-friendly view of the schedule for monitoring."""

        return {
            "method": self.config.method,
            "state": self._state.value,
            "poll_count": self.config.poll_count,
            "limit": self.config.limit if self.config.bounded else None,
            "poll_interval_seconds": self.config.poll_interval.total_seconds(),
            "in_flight": self.flights.in_flight,
            "client_alive": self.client.is_alive,
            "timer_id": self._handle.timer_id if self._handle else None,
        }


__all__ = [
    "UNBOUNDED",
    "ResponseHandler",
    "PollState",
    "PollerConfig",
    "FlightPolicy",
    "OverlappingFlights",
    "SingleFlight",
    "PollSchedule",
]
