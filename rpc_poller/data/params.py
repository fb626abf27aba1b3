"""Once-only encoding of poll parameters.

A poller sends the same parameters on every tick, so they are encoded the
first time they are needed and the bytes are reused afterwards. The cache is
a two-state value: it starts as :class:`TypedParams` and moves to
:class:`EncodedParams` on the first successful encode. That move is never
undone.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from rpc_poller.errors import EncodeError

Encoder = Callable[[Any], bytes]


def encode_json(value: Any) -> bytes:
    """Encode params as compact JSON; ``None`` becomes empty positional params."""

    if value is None:
        value = []
    return json.dumps(value, separators=(",", ":"), allow_nan=False).encode("utf-8")


@dataclass(frozen=True)
class TypedParams:
    value: Any


@dataclass(frozen=True)
class EncodedParams:
    payload: bytes


ParamsState = Union[TypedParams, EncodedParams]


class ParamCache:
    """Encodes parameters at most once and hands out the cached bytes."""

    def __init__(self, value: Any, encoder: Optional[Encoder] = None) -> None:
        self._encoder = encoder or encode_json
        self._state: ParamsState = TypedParams(value)

    @property
    def state(self) -> ParamsState:
        return self._state

    @property
    def is_encoded(self) -> bool:
        return isinstance(self._state, EncodedParams)

    def get(self) -> bytes:
        """Return the encoded params, encoding them on first use.

        Raises :class:`EncodeError` when the encoder fails. The state is left
        untouched in that case, so every later call tries again and fails the
        same way for a value that cannot be encoded.
        """

        if isinstance(self._state, EncodedParams):
            return self._state.payload
        return self._encode(self._state)

    def _encode(self, state: TypedParams) -> bytes:
        try:
            payload = self._encoder(state.value)
        except Exception as exc:
            raise EncodeError(type(state.value).__name__, cause=exc) from exc
        if not isinstance(payload, (bytes, bytearray)):
            raise EncodeError(type(state.value).__name__)
        self._state = EncodedParams(bytes(payload))
        return self._state.payload


__all__ = ["Encoder", "encode_json", "TypedParams", "EncodedParams", "ParamsState", "ParamCache"]
