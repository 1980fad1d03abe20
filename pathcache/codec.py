"""Binary encoding for entry files.

An entry file holds a fixed header followed by the serialized value::

    magic (4 bytes, b"PCE1") | expires_at (float64, big endian) | length (uint64) | payload

``expires_at`` is an absolute Unix timestamp, ``0`` meaning the entry never
expires. The payload is produced by a pluggable serializer, :mod:`pickle` by
default. Decoding validates the header and the payload length so that a
truncated or foreign file is reported as :class:`DecodeError` rather than
surfacing whatever the deserializer happens to raise.
"""

from __future__ import annotations

import pickle
import struct
import time
from collections.abc import Callable
from typing import Any

from .errors import DecodeError, EncodeError
from .types import NEVER, CacheEntry

__all__ = ["EntryCodec", "expiry_for"]

_MAGIC = b"PCE1"
_HEADER = struct.Struct(">4sdQ")

Dumps = Callable[[Any], bytes]
Loads = Callable[[bytes], Any]


def _pickle_dumps(value: Any) -> bytes:
    return pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL)


def expiry_for(ttl: float, now: float) -> float:
    """Return the absolute expiry for a relative ``ttl`` (``<= 0`` never expires)."""
    if ttl <= 0:
        return NEVER
    return now + ttl


class EntryCodec:
    """Encode and decode ``(value, expires_at)`` pairs."""

    def __init__(
        self,
        *,
        dumps: Dumps = _pickle_dumps,
        loads: Loads = pickle.loads,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._dumps = dumps
        self._loads = loads
        self._clock = clock

    def now(self) -> float:
        """Return the current time according to the codec's clock."""
        return self._clock()

    def encode(self, value: Any, ttl: float = 0) -> bytes:
        """Serialize ``value`` with an expiry ``ttl`` seconds from now."""
        try:
            payload = self._dumps(value)
        except Exception as exc:
            raise EncodeError(f"Cannot serialize value of type {type(value).__name__}") from exc
        if not isinstance(payload, (bytes, bytearray)):
            raise EncodeError("Serializer must return bytes.")
        header = _HEADER.pack(_MAGIC, expiry_for(ttl, self.now()), len(payload))
        return header + bytes(payload)

    def decode(self, data: bytes) -> CacheEntry:
        """Parse bytes produced by :meth:`encode`."""
        if len(data) < _HEADER.size:
            raise DecodeError(f"Entry is truncated ({len(data)} bytes).")
        magic, expires_at, length = _HEADER.unpack_from(data)
        if magic != _MAGIC:
            raise DecodeError("Entry does not carry the expected magic bytes.")
        payload = data[_HEADER.size:]
        if len(payload) != length:
            raise DecodeError(
                f"Entry payload size mismatch: expected {length}, found {len(payload)}."
            )
        try:
            value = self._loads(payload)
        except Exception as exc:
            raise DecodeError("Entry payload could not be deserialized.") from exc
        return CacheEntry(value=value, expires_at=expires_at)
