"""Filesystem-backed key/value store with TTL expiry."""

from __future__ import annotations

import logging
import os
import time
import uuid
from pathlib import Path
from typing import Any

from .codec import EntryCodec
from .errors import DecodeError
from .paths import PathMapper
from .types import CacheEntry

__all__ = ["FileStore"]

logger = logging.getLogger(__name__)

# Undecodable files younger than this may still be mid-write by the process
# that created them exclusively.
_PARTIAL_WRITE_GRACE = 2.0


class FileStore:
    """One file per key under a root directory.

    Every I/O failure is reported as ``False`` or the caller's default, never as
    an exception. ``set`` replaces the entry atomically; ``setnx`` is the only
    compare-and-swap style operation and relies on an exclusive create.
    """

    def __init__(
        self,
        root: Path | str,
        *,
        codec: EntryCodec | None = None,
    ) -> None:
        self._paths = PathMapper(root)
        self._codec = codec or EntryCodec()

    @property
    def root(self) -> Path:
        return self._paths.root

    @property
    def codec(self) -> EntryCodec:
        return self._codec

    def path(self, key: str) -> Path:
        """Return the entry file backing ``key``."""
        return self._paths.path(key)

    def set(self, key: str, value: Any, ttl: float = 0) -> bool:
        """Store ``value`` under ``key``, overwriting any previous entry."""
        data = self._codec.encode(value, ttl)
        path = self._paths.path(key)
        try:
            self._write_atomic(path, data)
        except OSError as exc:
            logger.debug("Failed to write %s for key %r: %s", path, key, exc)
            return False
        return True

    def get(self, key: str, default: Any = None) -> Any:
        """Return the live value for ``key`` or ``default``."""
        entry = self.entry(key)
        if entry is None or entry.is_expired(self._codec.now()):
            return default
        return entry.value

    def entry(self, key: str) -> CacheEntry | None:
        """Return the decoded entry for ``key`` regardless of expiry."""
        return self._read_entry(self._paths.path(key))

    def delete(self, key: str) -> bool:
        """Remove ``key``; succeeds when the entry is already absent."""
        path = self._paths.path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return True
        except OSError as exc:
            logger.debug("Failed to delete %s for key %r: %s", path, key, exc)
            return False
        return True

    # ``del`` is reserved in Python.
    del_ = delete

    def exists(self, key: str, *other_keys: str) -> int:
        """Count distinct keys holding a truthy live value."""
        found: list[str] = []
        for candidate in (key, *other_keys):
            if candidate in found:
                continue
            if self.get(candidate):
                found.append(candidate)
        return len(found)

    def setnx(self, key: str, value: Any, ttl: float = 0) -> bool:
        """Create ``key`` only if it holds no value; return whether this call won."""
        path = self._paths.path(key)
        if not self.get(key):
            self._discard_stale(path)
        data = self._codec.encode(value, ttl)
        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o666)
        except FileExistsError:
            return False
        except OSError as exc:
            logger.debug("Exclusive create of %s failed for key %r: %s", path, key, exc)
            return False
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
        except OSError as exc:
            logger.debug("Write to %s failed for key %r: %s", path, key, exc)
            self._unlink_quietly(path)
            return False
        return True

    def purge_expired(self) -> int:
        """Delete expired, corrupt and abandoned temporary files; return the count removed."""
        removed = 0
        now = self._codec.now()
        for path in self._paths.iter_entries():
            entry = self._read_entry(path)
            if entry is None:
                if not self._is_settled(path):
                    continue
            elif not entry.is_expired(now):
                continue
            if self._unlink_quietly(path):
                removed += 1
        for path in self._paths.iter_temporaries():
            if self._is_settled(path) and self._unlink_quietly(path):
                removed += 1
        if removed:
            logger.info("Purged %d expired entries from %s", removed, self.root)
        return removed

    def _read_entry(self, path: Path) -> CacheEntry | None:
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.debug("Failed to read %s: %s", path, exc)
            return None
        try:
            return self._codec.decode(data)
        except DecodeError as exc:
            logger.debug("Ignoring undecodable entry %s: %s", path, exc)
            return None

    def _discard_stale(self, path: Path) -> None:
        """Remove a leftover file that cannot hold a live value.

        A file that fails to decode is only removed once it is older than the
        partial-write grace period, so an exclusive creator that has not yet
        finished writing keeps its claim.
        """
        now = self._codec.now()
        entry = self._read_entry(path)
        if entry is None:
            if not path.exists() or not self._is_settled(path):
                return
        elif entry.value and not entry.is_expired(now):
            return
        self._unlink_quietly(path)

    @staticmethod
    def _is_settled(path: Path) -> bool:
        try:
            modified = path.stat().st_mtime
        except OSError:
            return False
        return time.time() - modified >= _PARTIAL_WRITE_GRACE

    @staticmethod
    def _unlink_quietly(path: Path) -> bool:
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.debug("Failed to remove %s: %s", path, exc)
            return False
        return True

    @staticmethod
    def _write_atomic(path: Path, data: bytes) -> None:
        tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        try:
            tmp_path.write_bytes(data)
            tmp_path.replace(path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise
