"""Builder for recurring RPC pollers.

Example, polling ``eth_blockNumber`` every 5 seconds, three times::

    transport = HttpJsonRpcTransport("https://rpc.example.org")
    poller = (
        watch(transport, "eth_blockNumber")
        .with_limit(3)
        .with_poll_interval(timedelta(seconds=5))
    )
    handle = poller.start(lambda block: print(int(block, 16)))

The builder only keeps a weak reference to the transport, so the caller has
to keep the transport alive for as long as it wants polling to happen.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, NoReturn, Optional, Union

from rpc_poller.data.client_ref import ClientRef
from rpc_poller.data.params import Encoder, ParamCache
from rpc_poller.data.transport import RpcTransport
from rpc_poller.errors import PollerStateError, UnsupportedOperation
from rpc_poller.infra.metrics import MetricsSink

from .schedule import UNBOUNDED, FlightPolicy, PollerConfig, PollSchedule, PollState, ResponseHandler
from .timers import AsyncioTimerHost, TimerHandle, TimerHost


class PollerBuilder:
    """Collects poller settings and starts a :class:`PollSchedule`."""

    def __init__(
        self,
        client: Union[RpcTransport, ClientRef],
        method: str,
        params: Any = None,
        encoder: Optional[Encoder] = None,
        timer_host: Optional[TimerHost] = None,
        flight_policy: Optional[FlightPolicy] = None,
        metrics: Optional[MetricsSink] = None,
        discard_after_stop: bool = False,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.client = client if isinstance(client, ClientRef) else ClientRef(client)
        self.params = ParamCache(params, encoder)
        self.config = PollerConfig(method=method, poll_interval=self.client.default_poll_interval())
        self.timer_host = timer_host or AsyncioTimerHost()
        self.flight_policy = flight_policy
        self.metrics = metrics
        self.discard_after_stop = discard_after_stop
        self.logger = logger or logging.getLogger(__name__)
        self._schedule: Optional[PollSchedule] = None

    @property
    def method(self) -> str:
        return self.config.method

    @property
    def limit(self) -> int:
        """Maximum number of successful polls; ``UNBOUNDED`` when unset."""

        return self.config.limit

    def set_limit(self, limit: Optional[int]) -> None:
        self._ensure_idle()
        if limit is None:
            self.config.limit = UNBOUNDED
            return
        if limit < 0:
            raise ValueError(f"limit must not be negative, got {limit}")
        self.config.limit = limit

    def with_limit(self, limit: Optional[int]) -> "PollerBuilder":
        self.set_limit(limit)
        return self

    @property
    def poll_interval(self) -> timedelta:
        return self.config.poll_interval

    def set_poll_interval(self, poll_interval: timedelta) -> None:
        self._ensure_idle()
        if poll_interval <= timedelta(0):
            raise ValueError(f"poll_interval must be positive, got {poll_interval}")
        self.config.poll_interval = poll_interval

    def with_poll_interval(self, poll_interval: timedelta) -> "PollerBuilder":
        self.set_poll_interval(poll_interval)
        return self

    @property
    def schedule(self) -> Optional[PollSchedule]:
        return self._schedule

    @property
    def state(self) -> PollState:
        if self._schedule is None:
            return PollState.IDLE
        return self._schedule.state

    @property
    def poll_count(self) -> int:
        return self.config.poll_count

    def start(self, handler: ResponseHandler) -> TimerHandle:
        """Start polling and return the handle of the recurring timer.

        The first call is issued right away rather than after one interval.
        Raises :class:`ClientUnavailable` if the transport is already gone, in
        which case nothing is called and the builder stays idle.
        """

        self._ensure_idle()
        schedule = PollSchedule(
            self.client,
            self.params,
            self.config,
            handler,
            self.timer_host,
            flight_policy=self.flight_policy,
            metrics=self.metrics,
            discard_after_stop=self.discard_after_stop,
            logger=self.logger,
        )
        handle = schedule.start()
        self._schedule = schedule
        return handle

    def stop(self) -> None:
        """Stop the poller before the limit is reached. Safe to call repeatedly."""

        if self._schedule is not None:
            self._schedule.stop()

    def into_stream(self) -> NoReturn:
        raise UnsupportedOperation("Streams cannot be used with timer-driven pollers.")

    def _ensure_idle(self) -> None:
        if self._schedule is not None:
            raise PollerStateError("Poller has already been started")

    def __repr__(self) -> str:
        return f"PollerBuilder(method={self.config.method!r}, state={self.state.value})"


def watch(client: Union[RpcTransport, ClientRef], method: str, params: Any = None, **kwargs: Any) -> PollerBuilder:
    """Shorthand for ``PollerBuilder(client, method, params, ...)``."""

    return PollerBuilder(client, method, params, **kwargs)


__all__ = ["PollerBuilder", "watch"]
