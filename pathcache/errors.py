"""Exception hierarchy for pathcache."""

from __future__ import annotations

__all__ = [
    "DecodeError",
    "EncodeError",
    "LockCancelledError",
    "LockError",
    "LockOwnershipError",
    "LockTimeoutError",
    "PathCacheError",
    "ProducerDeadError",
]


class PathCacheError(RuntimeError):
    """Base class for errors raised by pathcache."""


class DecodeError(PathCacheError):
    """Stored bytes are truncated, foreign or otherwise malformed."""


class EncodeError(PathCacheError, TypeError):
    """A value could not be serialized for storage."""


class LockError(PathCacheError):
    """Base class for lock failures."""

    def __init__(self, name: str, message: str) -> None:
        super().__init__(message)
        self.name = name


class LockTimeoutError(LockError):
    """Acquisition did not succeed within the allotted time."""

    def __init__(self, name: str, timeout: float) -> None:
        super().__init__(name, f"Timed out after {timeout:g}s waiting for lock {name!r}")
        self.timeout = timeout


class LockCancelledError(LockError):
    """Acquisition was cancelled by the caller."""

    def __init__(self, name: str) -> None:
        super().__init__(name, f"Acquisition of lock {name!r} was cancelled")


class LockOwnershipError(LockError):
    """A lock was released or renewed by a caller that does not hold it."""


class ProducerDeadError(PathCacheError):
    """The process computing a value vanished before publishing it.

    Raised by waiters in ``get_or_compute`` once the bounded wait is exhausted.
    It is terminal for the call and is never retried internally.
    """

    def __init__(self, key: str, waited: float) -> None:
        super().__init__(
            f"No value published for {key!r} after waiting {waited:.1f}s; "
            "producer presumed dead"
        )
        self.key = key
        self.waited = waited
