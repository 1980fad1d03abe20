"""Cooperative named locks built on exclusive file creation."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any, Final

from .errors import LockCancelledError, LockError, LockOwnershipError, LockTimeoutError
from .store import FileStore
from .types import CacheEntry, LockToken, new_owner_id

__all__ = ["LockManager", "lock_key"]

logger = logging.getLogger(__name__)

LOCK_PREFIX: Final[str] = "lock:"

_DEFAULT_HOLD: Final[float] = 3.0
_DEFAULT_POLL_MS: Final[float] = 50.0
_DEFAULT_TIMEOUT: Final[float] = 30.0

_UNSET: Any = object()


def lock_key(name: str) -> str:
    """Return the store key reserved for lock ``name``."""
    return f"{LOCK_PREFIX}{name}"


def _record_expiry(entry: CacheEntry) -> float:
    """Return the hold expiry recorded in a lock entry."""
    value = entry.value
    if isinstance(value, Mapping):
        recorded = value.get("expires_at")
        if isinstance(recorded, (int, float)):
            return float(recorded)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return entry.expires_at


def _record_owner(entry: CacheEntry) -> str | None:
    value = entry.value
    if isinstance(value, Mapping):
        owner = value.get("owner")
        if isinstance(owner, str):
            return owner
    return None


class LockManager:
    """Acquire and release named locks stored as ``lock:<name>`` entries.

    A lock is held while its entry file exists. The expiry recorded in the entry
    is the only staleness signal: an acquirer that finds it in the past removes
    the entry and competes for it again, which recovers locks abandoned by
    crashed holders.

    With ``strict=False`` (the default) any caller may release any lock, as no
    ownership is checked. With ``strict=True`` release and renewal require the
    :class:`LockToken` returned by :meth:`acquire`.

    Locks are not re-entrant; acquiring a name twice from the same caller
    blocks exactly like contention from another process.
    """

    def __init__(
        self,
        store: FileStore,
        *,
        hold: float = _DEFAULT_HOLD,
        poll_ms: float = _DEFAULT_POLL_MS,
        timeout: float | None = _DEFAULT_TIMEOUT,
        strict: bool = False,
    ) -> None:
        self._store = store
        self._hold = hold
        self._poll_ms = poll_ms
        self._timeout = timeout
        self._strict = strict

    @property
    def strict(self) -> bool:
        return self._strict

    def acquire(
        self,
        name: str,
        hold: float | None = None,
        poll_ms: float | None = None,
        *,
        timeout: float | None = _UNSET,
        cancel: threading.Event | None = None,
    ) -> LockToken:
        """Block until lock ``name`` is acquired and return its token.

        ``hold`` is how long the lock stays valid without renewal. ``poll_ms``
        is the pause before every attempt. ``timeout`` bounds the total wait in
        seconds; pass ``None`` to wait indefinitely. Setting ``cancel`` aborts
        the wait at the next poll.
        """
        hold = self._hold if hold is None else hold
        if hold <= 0:
            raise ValueError("Lock hold duration must be positive.")
        pause = (self._poll_ms if poll_ms is None else poll_ms) / 1000.0
        limit = self._timeout if timeout is _UNSET else timeout
        key = lock_key(name)
        owner = new_owner_id()
        started = time.monotonic()
        attempts = 0
        while True:
            if cancel is not None:
                if cancel.wait(pause):
                    raise LockCancelledError(name)
            else:
                time.sleep(pause)
            self._reclaim_if_stale(name)
            attempts += 1
            token = LockToken(
                name=name,
                owner=owner,
                expires_at=self._store.codec.now() + hold,
            )
            if self._store.setnx(key, token.to_record(), hold):
                logger.debug("Acquired lock %r after %d attempt(s)", name, attempts)
                return token
            if limit is not None and time.monotonic() - started >= limit:
                raise LockTimeoutError(name, limit)

    def release(self, name: str, token: LockToken | None = None) -> None:
        """Release lock ``name``.

        In strict mode ``token`` must match the current holder; a lock that has
        already expired or vanished is left alone.
        """
        key = lock_key(name)
        if self._strict:
            if token is None:
                raise LockOwnershipError(name, f"Releasing lock {name!r} requires its token")
            entry = self._store.entry(key)
            if entry is None or self._is_stale(entry):
                return
            self._check_owner(name, entry, token)
        self._store.delete(key)

    def renew(self, token: LockToken, hold: float | None = None) -> LockToken:
        """Extend a held lock and return the refreshed token."""
        hold = self._hold if hold is None else hold
        if hold <= 0:
            raise ValueError("Lock hold duration must be positive.")
        key = lock_key(token.name)
        entry = self._store.entry(key)
        if entry is None or self._is_stale(entry):
            raise LockOwnershipError(token.name, f"Lock {token.name!r} is no longer held")
        self._check_owner(token.name, entry, token)
        renewed = LockToken(
            name=token.name,
            owner=token.owner,
            expires_at=self._store.codec.now() + hold,
        )
        if not self._store.set(key, renewed.to_record(), hold):
            raise LockError(token.name, f"Failed to persist renewal of lock {token.name!r}")
        return renewed

    def is_locked(self, name: str) -> bool:
        """Return True while a live hold exists for ``name``."""
        entry = self._store.entry(lock_key(name))
        return entry is not None and not self._is_stale(entry)

    @contextmanager
    def locked(
        self,
        name: str,
        hold: float | None = None,
        poll_ms: float | None = None,
        *,
        timeout: float | None = _UNSET,
        cancel: threading.Event | None = None,
    ) -> Iterator[LockToken]:
        """Hold lock ``name`` for the duration of a ``with`` block."""
        token = self.acquire(name, hold, poll_ms, timeout=timeout, cancel=cancel)
        try:
            yield token
        finally:
            self.release(name, token)

    def _reclaim_if_stale(self, name: str) -> None:
        key = lock_key(name)
        entry = self._store.entry(key)
        if entry is None or not self._is_stale(entry):
            return
        if self._store.delete(key):
            logger.info("Reclaimed stale lock %r held by %s", name, _record_owner(entry))

    def _is_stale(self, entry: CacheEntry) -> bool:
        now = self._store.codec.now()
        return _record_expiry(entry) < now or entry.is_expired(now)

    @staticmethod
    def _check_owner(name: str, entry: CacheEntry, token: LockToken) -> None:
        holder = _record_owner(entry)
        if token.name != name or holder != token.owner:
            raise LockOwnershipError(
                name,
                f"Lock {name!r} is held by {holder or 'an unknown holder'}, not {token.owner}",
            )
