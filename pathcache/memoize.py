"""Compute-once-under-lock memoization."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any, Final, Protocol

from .errors import ProducerDeadError
from .lock import lock_key
from .store import FileStore

__all__ = ["Compute", "Memoizer", "TtlSetter"]

logger = logging.getLogger(__name__)

_ADVISORY_LOCK_VALUE: Final[str] = "lock"
_ADVISORY_LOCK_TTL: Final[float] = 5.0
_WAIT_INTERVAL: Final[float] = 0.1
_MAX_POLLS: Final[int] = 10

TtlSetter = Callable[[float], None]


class Compute(Protocol):
    """Producer invoked by the single caller that wins the advisory lock.

    The argument lets the producer override the TTL used to publish its result.
    """

    def __call__(self, set_ttl: TtlSetter) -> Any: ...


def _is_produced(value: Any) -> bool:
    if value is None or value is False:
        return False
    return not (isinstance(value, (str, bytes)) and not value)


class Memoizer:
    """Return cached values, computing missing ones in exactly one process.

    On a miss the caller races for a short advisory lock. The winner runs the
    producer and publishes the result; everyone else polls the store for a
    bounded time and raises :class:`ProducerDeadError` when nothing shows up.
    A producer that returns ``None``, ``False``, ``""`` or ``b""`` is treated
    as failed, and its advisory lock is left to expire on its own TTL.
    """

    def __init__(
        self,
        store: FileStore,
        *,
        lock_ttl: float = _ADVISORY_LOCK_TTL,
        wait_interval: float = _WAIT_INTERVAL,
        max_polls: int = _MAX_POLLS,
    ) -> None:
        self._store = store
        self._lock_ttl = lock_ttl
        self._wait_interval = wait_interval
        self._max_polls = max(0, max_polls)

    def get_or_compute(self, key: str, compute: Compute, ttl: float = 0) -> Any:
        """Return the value under ``key``, producing it with ``compute`` on a miss."""
        value = self._store.get(key)
        if value:
            return value

        advisory = lock_key(key)
        if not self._store.setnx(advisory, _ADVISORY_LOCK_VALUE, self._lock_ttl):
            return self._wait_for(key)

        # Another producer may have published between the lookup and the lock.
        value = self._store.get(key)
        if value:
            self._store.delete(advisory)
            return value

        publish_ttl = ttl

        def set_ttl(seconds: float) -> None:
            nonlocal publish_ttl
            publish_ttl = seconds

        value = compute(set_ttl)
        if not _is_produced(value):
            logger.debug("Producer for %r returned no value; leaving lock to lapse", key)
            return value
        if not self._store.set(key, value, publish_ttl):
            logger.warning("Failed to publish computed value for %r", key)
        self._store.delete(advisory)
        return value

    def _wait_for(self, key: str) -> Any:
        started = time.monotonic()
        for _ in range(self._max_polls + 1):
            time.sleep(self._wait_interval)
            value = self._store.get(key)
            if value:
                return value
        raise ProducerDeadError(key, time.monotonic() - started)
