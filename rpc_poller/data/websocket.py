"""JSON-RPC over a persistent WebSocket connection."""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from datetime import timedelta
from typing import Any, Optional

import websockets
from websockets.exceptions import WebSocketException

from rpc_poller.errors import TransportError

from .transport import build_request, default_poll_interval_for, parse_response


class WebSocketJsonRpcTransport:
    """Sends one request at a time over a lazily opened WebSocket.

    Messages without a matching ``id`` (subscription notifications, stale
    replies) are skipped while waiting for the response. A broken socket is
    dropped and reopened on the next request.
    """

    def __init__(
        self,
        url: str,
        poll_interval: Optional[timedelta] = None,
        timeout: float = 10.0,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.url = url
        self.poll_interval = poll_interval or default_poll_interval_for(url)
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()
        self._ws: Any = None

    async def request(self, method: str, params: bytes) -> Any:
        request_id = next(self._ids)
        body = build_request(request_id, method, params)
        async with self._lock:
            try:
                payload = await asyncio.wait_for(self._roundtrip(request_id, body), self.timeout)
            except asyncio.TimeoutError as exc:
                await self._drop()
                raise TransportError("RPC request timed out", method=method, cause=exc) from exc
            except (OSError, WebSocketException) as exc:
                await self._drop()
                raise TransportError("RPC request failed", method=method, cause=exc) from exc
        return parse_response(method, payload, request_id)

    async def _roundtrip(self, request_id: int, body: bytes) -> Any:
        ws = await self._connection()
        await ws.send(body.decode("utf-8"))
        while True:
            raw = await ws.recv()
            try:
                message = json.loads(raw)
            except ValueError:
                self.logger.debug("Skipping non-JSON frame from %s", self.url)
                continue
            if isinstance(message, dict) and message.get("id") == request_id:
                return message
            self.logger.debug(
                "Skipping unrelated frame",
                extra={"event": "ws_frame_skipped", "url": self.url, "expected_id": request_id},
            )

    async def _connection(self) -> Any:
        if self._ws is None:
            self._ws = await websockets.connect(self.url, ping_interval=20, ping_timeout=20)
            self.logger.info("Connected to %s", self.url, extra={"event": "ws_connected", "url": self.url})
        return self._ws

    async def _drop(self) -> None:
        ws, self._ws = self._ws, None
        if ws is None:
            return
        try:
            await ws.close()
        except (OSError, WebSocketException) as exc:
            self.logger.debug("Error while closing %s: %s", self.url, exc)

    async def close(self) -> None:
        async with self._lock:
            await self._drop()

    def __repr__(self) -> str:
        return f"WebSocketJsonRpcTransport(url={self.url!r})"


__all__ = ["WebSocketJsonRpcTransport"]
