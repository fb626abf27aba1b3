"""JSON-RPC transports used by pollers.

Pollers only rely on the :class:`RpcTransport` protocol: an awaitable
``request`` that takes already-encoded params plus a preferred
``poll_interval``. :class:`HttpJsonRpcTransport` is the stock HTTP
implementation; it runs the blocking ``requests`` call in a worker thread so
the event loop that drives the timers is never blocked.
"""

from __future__ import annotations

import asyncio
import ipaddress
import itertools
import json
import logging
from datetime import timedelta
from typing import Any, Dict, Optional, Protocol
from urllib.parse import urlparse

import requests

from rpc_poller.errors import TransportError

LOCAL_POLL_INTERVAL = timedelta(milliseconds=250)
REMOTE_POLL_INTERVAL = timedelta(seconds=7)


class RpcTransport(Protocol):
    """Protocol describing the transport surface a poller needs."""

    poll_interval: timedelta

    async def request(self, method: str, params: bytes) -> Any:
        """Issue ``method`` with pre-encoded ``params`` and return the result."""


def build_request(request_id: int, method: str, params: bytes) -> bytes:
    """Build a JSON-RPC 2.0 request body around already-encoded params."""

    head = json.dumps({"jsonrpc": "2.0", "id": request_id, "method": method}, separators=(",", ":"))
    return head[:-1].encode("utf-8") + b',"params":' + params + b"}"


def parse_response(method: str, payload: Any, request_id: Optional[int] = None) -> Any:
    """Return the ``result`` member of a JSON-RPC response or raise."""

    if not isinstance(payload, dict):
        raise TransportError("RPC response was not a JSON object", method=method, data=payload)
    if request_id is not None and payload.get("id") != request_id:
        raise TransportError("RPC response id mismatch", method=method, data=payload.get("id"))
    error = payload.get("error")
    if error is not None:
        if isinstance(error, dict):
            raise TransportError(
                str(error.get("message", "RPC error")),
                method=method,
                code=error.get("code"),
                data=error.get("data"),
            )
        raise TransportError("RPC error", method=method, data=error)
    if "result" not in payload:
        raise TransportError("RPC response carried neither result nor error", method=method, data=payload)
    return payload["result"]


def default_poll_interval_for(url: str) -> timedelta:
    """Poll local nodes aggressively and remote ones conservatively."""

    host = urlparse(url).hostname or ""
    if host == "localhost":
        return LOCAL_POLL_INTERVAL
    try:
        if ipaddress.ip_address(host).is_loopback:
            return LOCAL_POLL_INTERVAL
    except ValueError:
        pass
    return REMOTE_POLL_INTERVAL


class HttpJsonRpcTransport:
    """JSON-RPC over HTTP POST backed by a ``requests`` session."""

    def __init__(
        self,
        url: str,
        poll_interval: Optional[timedelta] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        headers: Optional[Dict[str, str]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.url = url
        self.poll_interval = poll_interval or default_poll_interval_for(url)
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {"Content-Type": "application/json", **(headers or {})}
        self.logger = logger or logging.getLogger(__name__)
        self._ids = itertools.count(1)

    async def request(self, method: str, params: bytes) -> Any:
        request_id = next(self._ids)
        body = build_request(request_id, method, params)
        payload = await asyncio.to_thread(self._post, method, body)
        return parse_response(method, payload, request_id)

    def _post(self, method: str, body: bytes) -> Any:
        try:
            response = self.session.post(self.url, data=body, headers=self.headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise TransportError("RPC request failed", method=method, cause=exc) from exc

        status = response.status_code
        if status != 200:
            raise TransportError(
                "RPC request returned non-200 status",
                method=method,
                http_status=status,
                data=response.text,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(
                "RPC response was not valid JSON",
                method=method,
                http_status=status,
                data=response.text,
                cause=exc,
            ) from exc

    def close(self) -> None:
        self.session.close()

    def __repr__(self) -> str:
        return f"HttpJsonRpcTransport(url={self.url!r})"


__all__ = [
    "RpcTransport",
    "HttpJsonRpcTransport",
    "build_request",
    "parse_response",
    "default_poll_interval_for",
    "LOCAL_POLL_INTERVAL",
    "REMOTE_POLL_INTERVAL",
]
