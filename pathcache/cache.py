"""Public cache surface combining the store, locks and memoization."""

from __future__ import annotations

import asyncio
import threading
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from pathlib import Path
from typing import Any

from .codec import EntryCodec
from .lock import LockManager
from .memoize import Compute, Memoizer
from .settings import Settings
from .store import FileStore
from .types import CacheEntry, LockToken

__all__ = ["AsyncCache", "Cache"]

_UNSET: Any = object()


class Cache:
    """Filesystem cache with TTL expiry, named locks and compute-once lookups.

    Construct one instance per storage root at startup and share it; the
    instance holds no per-call state and every coordination step goes through
    the files under ``root``, so separate processes pointing at the same root
    cooperate.
    """

    def __init__(
        self,
        root: Path | str,
        *,
        codec: EntryCodec | None = None,
        lock_hold: float = 3.0,
        lock_poll_ms: float = 50.0,
        lock_timeout: float | None = 30.0,
        strict_locks: bool = False,
    ) -> None:
        self._store = FileStore(root, codec=codec)
        self._locks = LockManager(
            self._store,
            hold=lock_hold,
            poll_ms=lock_poll_ms,
            timeout=lock_timeout,
            strict=strict_locks,
        )
        self._memoizer = Memoizer(self._store)

    @classmethod
    def from_settings(cls, settings: Settings, *, codec: EntryCodec | None = None) -> Cache:
        """Build a cache from loaded :class:`Settings`."""
        return cls(
            settings.root,
            codec=codec,
            lock_hold=settings.lock_hold,
            lock_poll_ms=settings.lock_poll_ms,
            lock_timeout=settings.lock_timeout,
            strict_locks=settings.strict_locks,
        )

    @property
    def root(self) -> Path:
        return self._store.root

    @property
    def store(self) -> FileStore:
        return self._store

    @property
    def locks(self) -> LockManager:
        return self._locks

    def get(self, key: str, default: Any = None) -> Any:
        return self._store.get(key, default)

    def set(self, key: str, value: Any, ttl: float = 0) -> bool:
        return self._store.set(key, value, ttl)

    def delete(self, key: str) -> bool:
        return self._store.delete(key)

    def del_(self, key: str) -> bool:
        """Alias of :meth:`delete`."""
        return self._store.delete(key)

    def exists(self, key: str, *other_keys: str) -> int:
        return self._store.exists(key, *other_keys)

    def setnx(self, key: str, value: Any, ttl: float = 0) -> bool:
        return self._store.setnx(key, value, ttl)

    def entry(self, key: str) -> CacheEntry | None:
        return self._store.entry(key)

    def purge_expired(self) -> int:
        return self._store.purge_expired()

    def get_or_compute(self, key: str, compute: Compute, ttl: float = 0) -> Any:
        """Return the cached value or let exactly one caller compute it.

        ``compute`` receives a callable that overrides ``ttl`` for publishing.
        Waiters raise :class:`~pathcache.errors.ProducerDeadError` when the
        producer fails to publish within about a second.
        """
        return self._memoizer.get_or_compute(key, compute, ttl)

    def lock(
        self,
        name: str,
        occupy: float | None = None,
        poll_ms: float | None = None,
        *,
        timeout: float | None = _UNSET,
        cancel: threading.Event | None = None,
    ) -> LockToken:
        """Acquire lock ``name``, holding it for ``occupy`` seconds at most."""
        if timeout is _UNSET:
            return self._locks.acquire(name, occupy, poll_ms, cancel=cancel)
        return self._locks.acquire(name, occupy, poll_ms, timeout=timeout, cancel=cancel)

    def unlock(self, name: str, token: LockToken | None = None) -> None:
        self._locks.release(name, token)

    def renew(self, token: LockToken, occupy: float | None = None) -> LockToken:
        return self._locks.renew(token, occupy)

    @contextmanager
    def locked(
        self,
        name: str,
        occupy: float | None = None,
        poll_ms: float | None = None,
        *,
        timeout: float | None = _UNSET,
        cancel: threading.Event | None = None,
    ) -> Iterator[LockToken]:
        """Hold lock ``name`` for the duration of a ``with`` block."""
        token = self.lock(name, occupy, poll_ms, timeout=timeout, cancel=cancel)
        try:
            yield token
        finally:
            self.unlock(name, token)


class AsyncCache:
    """Asynchronous facade running :class:`Cache` operations in worker threads."""

    def __init__(self, cache: Cache) -> None:
        self._cache = cache

    @property
    def cache(self) -> Cache:
        return self._cache

    async def get(self, key: str, default: Any = None) -> Any:
        return await asyncio.to_thread(self._cache.get, key, default)

    async def set(self, key: str, value: Any, ttl: float = 0) -> bool:
        return await asyncio.to_thread(self._cache.set, key, value, ttl)

    async def delete(self, key: str) -> bool:
        return await asyncio.to_thread(self._cache.delete, key)

    async def del_(self, key: str) -> bool:
        """Alias of :meth:`delete`."""
        return await asyncio.to_thread(self._cache.del_, key)

    async def exists(self, key: str, *other_keys: str) -> int:
        return await asyncio.to_thread(self._cache.exists, key, *other_keys)

    async def setnx(self, key: str, value: Any, ttl: float = 0) -> bool:
        return await asyncio.to_thread(self._cache.setnx, key, value, ttl)

    async def entry(self, key: str) -> CacheEntry | None:
        return await asyncio.to_thread(self._cache.entry, key)

    async def purge_expired(self) -> int:
        return await asyncio.to_thread(self._cache.purge_expired)

    async def get_or_compute(self, key: str, compute: Compute, ttl: float = 0) -> Any:
        """Run :meth:`Cache.get_or_compute` in a thread; ``compute`` must be synchronous."""
        return await asyncio.to_thread(self._cache.get_or_compute, key, compute, ttl)

    async def lock(
        self,
        name: str,
        occupy: float | None = None,
        poll_ms: float | None = None,
        *,
        timeout: float | None = _UNSET,
    ) -> LockToken:
        """Acquire lock ``name``; cancelling the awaiting task stops the polling thread."""
        cancel = threading.Event()
        task = asyncio.ensure_future(
            asyncio.to_thread(
                self._cache.lock, name, occupy, poll_ms, timeout=timeout, cancel=cancel
            )
        )
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            cancel.set()
            task.add_done_callback(self._release_abandoned)
            raise

    def _release_abandoned(self, task: asyncio.Future[LockToken]) -> None:
        # The worker may have won the lock just before seeing the cancellation.
        if task.cancelled() or task.exception() is not None:
            return
        token = task.result()
        task.get_loop().run_in_executor(None, self._cache.unlock, token.name, token)

    async def unlock(self, name: str, token: LockToken | None = None) -> None:
        await asyncio.to_thread(self._cache.unlock, name, token)

    async def renew(self, token: LockToken, occupy: float | None = None) -> LockToken:
        return await asyncio.to_thread(self._cache.renew, token, occupy)

    @asynccontextmanager
    async def locked(
        self,
        name: str,
        occupy: float | None = None,
        poll_ms: float | None = None,
        *,
        timeout: float | None = _UNSET,
    ) -> AsyncIterator[LockToken]:
        token = await self.lock(name, occupy, poll_ms, timeout=timeout)
        try:
            yield token
        finally:
            await self.unlock(name, token)
