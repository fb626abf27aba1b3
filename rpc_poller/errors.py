"""Error taxonomy for pollers and the transports they drive."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


class PollerError(Exception):
    """Base class for every error raised by the poller package."""


class ClientUnavailable(PollerError):
    """The client reference could not be resolved; no calls were issued."""

    def __init__(self, message: str = "Client has been dropped.") -> None:
        super().__init__(message)


class PollerStateError(PollerError):
    """An operation was attempted from a state that does not allow it."""


class UnsupportedOperation(PollerError):
    """The requested adapter is not available in this execution environment."""


@dataclass(eq=False)
class EncodeError(PollerError):
    """Parameters could not be encoded for the wire."""

    type_name: str
    cause: Optional[BaseException] = None

    def __str__(self) -> str:
        if self.cause is not None:
            return f"Failed to encode params of type {self.type_name}: {self.cause}"
        return f"Failed to encode params of type {self.type_name}"


@dataclass(eq=False)
class TransportError(PollerError):
    """An RPC call failed at the network, HTTP, or JSON-RPC layer."""

    message: str
    method: Optional[str] = None
    code: Optional[int] = None
    http_status: Optional[int] = None
    data: Any = None
    cause: Optional[BaseException] = None

    def __str__(self) -> str:
        suffix = []
        if self.method is not None:
            suffix.append(f"method={self.method}")
        if self.code is not None:
            suffix.append(f"code={self.code}")
        if self.http_status is not None:
            suffix.append(f"status={self.http_status}")
        if self.cause:
            suffix.append(f"cause={self.cause}")
        detail = ", ".join(suffix)
        return f"{self.message} ({detail})" if detail else self.message


__all__ = [
    "PollerError",
    "ClientUnavailable",
    "PollerStateError",
    "UnsupportedOperation",
    "EncodeError",
    "TransportError",
]
