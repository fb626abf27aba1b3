"""Timer-driven pollers for JSON-RPC methods."""

from .errors import (
    ClientUnavailable,
    EncodeError,
    PollerError,
    PollerStateError,
    TransportError,
    UnsupportedOperation,
)
from .polling import PollerBuilder, PollSchedule, PollState, watch

__version__ = "0.1.0"

__all__ = [
    "ClientUnavailable",
    "EncodeError",
    "PollerError",
    "PollerStateError",
    "TransportError",
    "UnsupportedOperation",
    "PollerBuilder",
    "PollSchedule",
    "PollState",
    "watch",
]
