"""Non-owning reference to an RPC transport."""

from __future__ import annotations

import weakref
from datetime import timedelta
from typing import Generic, Optional, TypeVar

from rpc_poller.errors import ClientUnavailable

DEFAULT_POLL_INTERVAL = timedelta(seconds=7)

T = TypeVar("T")


class ClientRef(Generic[T]):
    """Weak handle to a transport that has to be resolved at each use.

    Holding a ``ClientRef`` never keeps the transport alive. Resolution can
    start failing at any time, including between two ticks of the same
    poller, once the owner drops the transport or :meth:`release` is called.
    """

    def __init__(self, client: T) -> None:
        self._ref: Optional[weakref.ReferenceType] = weakref.ref(client)

    def resolve(self) -> Optional[T]:
        """Return the transport if it is still alive, otherwise ``None``."""

        if self._ref is None:
            return None
        return self._ref()

    def resolve_or_raise(self) -> T:
        client = self.resolve()
        if client is None:
            raise ClientUnavailable()
        return client

    @property
    def is_alive(self) -> bool:
        return self.resolve() is not None

    def release(self) -> None:
        """Detach from the transport; the reference never resolves again."""

        self._ref = None

    def default_poll_interval(self, fallback: timedelta = DEFAULT_POLL_INTERVAL) -> timedelta:
        """Return the transport's preferred poll interval, or ``fallback``."""

        client = self.resolve()
        if client is None:
            return fallback
        return getattr(client, "poll_interval", None) or fallback

    def __repr__(self) -> str:
        return f"ClientRef(alive={self.is_alive})"


__all__ = ["ClientRef", "DEFAULT_POLL_INTERVAL"]
