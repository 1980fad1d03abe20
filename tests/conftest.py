"""Shared pytest fixtures and configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from pathcache import settings
from pathcache.cache import Cache
from pathcache.codec import EntryCodec
from pathcache.store import FileStore

pytest_plugins = ("pytest_asyncio",)


class FakeClock:
    """Manually advanced clock for expiry tests."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _reset_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep memoized settings from leaking between tests."""
    monkeypatch.setattr(settings, "_CACHED_SETTINGS", None)


@pytest.fixture
def cache_root(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(cache_root: Path) -> FileStore:
    return FileStore(cache_root)


@pytest.fixture
def clocked_store(cache_root: Path, clock: FakeClock) -> FileStore:
    """Store whose expiry decisions follow the fake clock."""
    return FileStore(cache_root, codec=EntryCodec(clock=clock))


@pytest.fixture
def cache(cache_root: Path) -> Cache:
    return Cache(cache_root, lock_poll_ms=5, lock_timeout=5.0)
