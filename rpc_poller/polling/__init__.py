"""Poll scheduling: builder, schedule state machine, and timer hosts."""

from .builder import PollerBuilder, watch
from .schedule import (
    UNBOUNDED,
    FlightPolicy,
    OverlappingFlights,
    PollerConfig,
    PollSchedule,
    PollState,
    SingleFlight,
)
from .timers import AsyncioTimerHost, TimerHandle, TimerHost

__all__ = [
    "PollerBuilder",
    "watch",
    "UNBOUNDED",
    "FlightPolicy",
    "OverlappingFlights",
    "PollerConfig",
    "PollSchedule",
    "PollState",
    "SingleFlight",
    "AsyncioTimerHost",
    "TimerHandle",
    "TimerHost",
]
