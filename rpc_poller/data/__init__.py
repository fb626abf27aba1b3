"""Data access layer: transports, client references, and encoded params."""

from .client_ref import DEFAULT_POLL_INTERVAL, ClientRef
from .params import EncodedParams, ParamCache, TypedParams, encode_json
from .transport import HttpJsonRpcTransport, RpcTransport
from .websocket import WebSocketJsonRpcTransport

__all__ = [
    "DEFAULT_POLL_INTERVAL",
    "ClientRef",
    "EncodedParams",
    "ParamCache",
    "TypedParams",
    "encode_json",
    "HttpJsonRpcTransport",
    "RpcTransport",
    "WebSocketJsonRpcTransport",
]
