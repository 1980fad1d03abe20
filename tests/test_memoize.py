"""Tests for compute-once memoization."""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Any

import pytest

from pathcache.errors import ProducerDeadError
from pathcache.lock import lock_key
from pathcache.memoize import Memoizer, TtlSetter
from pathcache.store import FileStore


@pytest.fixture
def memoizer(store: FileStore) -> Memoizer:
    return Memoizer(store)


def test_cached_value_skips_compute(memoizer: Memoizer, store: FileStore) -> None:
    store.set("k", "cached")

    def compute(set_ttl: TtlSetter) -> str:
        raise AssertionError("compute should not run on a cache hit")

    assert memoizer.get_or_compute("k", compute) == "cached"


def test_miss_computes_and_publishes(memoizer: Memoizer, store: FileStore) -> None:
    calls: list[str] = []

    def compute(set_ttl: TtlSetter) -> dict[str, int]:
        calls.append("k")
        return {"total": 3}

    assert memoizer.get_or_compute("k", compute) == {"total": 3}
    assert memoizer.get_or_compute("k", compute) == {"total": 3}
    assert calls == ["k"]
    assert store.get("k") == {"total": 3}
    assert not store.path(lock_key("k")).exists()


def test_compute_can_override_ttl(memoizer: Memoizer, store: FileStore) -> None:
    def compute(set_ttl: TtlSetter) -> str:
        set_ttl(120)
        return "value"

    before = time.time()
    memoizer.get_or_compute("k", compute, ttl=5)
    entry = store.entry("k")
    assert entry is not None
    assert entry.expires_at >= before + 120


def test_default_ttl_is_used(memoizer: Memoizer, store: FileStore) -> None:
    memoizer.get_or_compute("k", lambda set_ttl: "value")
    entry = store.entry("k")
    assert entry is not None
    assert entry.expires_at == 0


@pytest.mark.parametrize("result", [None, False, "", b""])
def test_empty_result_is_not_published(
    memoizer: Memoizer, store: FileStore, result: Any
) -> None:
    assert memoizer.get_or_compute("k", lambda set_ttl: result) == result
    assert store.entry("k") is None
    # The advisory lock is left to lapse on its own.
    assert store.get(lock_key("k")) == "lock"


def test_compute_errors_propagate(memoizer: Memoizer, store: FileStore) -> None:
    def compute(set_ttl: TtlSetter) -> str:
        raise ValueError("upstream failed")

    with pytest.raises(ValueError, match="upstream failed"):
        memoizer.get_or_compute("k", compute)
    assert store.entry("k") is None


def test_waiter_receives_published_value(store: FileStore) -> None:
    memoizer = Memoizer(store)
    store.setnx(lock_key("k"), "lock", 5)
    publisher = threading.Timer(0.25, store.set, args=("k", "published"))
    publisher.start()
    try:
        value = memoizer.get_or_compute("k", lambda set_ttl: "never used")
    finally:
        publisher.cancel()
    assert value == "published"


def test_waiter_gives_up_when_producer_is_gone(store: FileStore) -> None:
    memoizer = Memoizer(store, wait_interval=0.01, max_polls=3)
    store.setnx(lock_key("k"), "lock", 5)
    with pytest.raises(ProducerDeadError) as excinfo:
        memoizer.get_or_compute("k", lambda set_ttl: "never used")
    assert excinfo.value.key == "k"


def test_default_wait_is_about_a_second(store: FileStore) -> None:
    memoizer = Memoizer(store)
    store.setnx(lock_key("k"), "lock", 5)
    started = time.monotonic()
    with pytest.raises(ProducerDeadError):
        memoizer.get_or_compute("k", lambda set_ttl: "never used")
    assert 1.0 <= time.monotonic() - started < 3.0


def test_single_compute_under_concurrency(store: FileStore) -> None:
    callers = 8
    barrier = threading.Barrier(callers)
    compute_calls = 0
    counter_lock = threading.Lock()
    results: list[Any] = []
    errors: list[BaseException] = []

    def compute(set_ttl: TtlSetter) -> str:
        nonlocal compute_calls
        with counter_lock:
            compute_calls += 1
        time.sleep(0.3)
        return "expensive"

    def worker() -> None:
        memoizer = Memoizer(store)
        barrier.wait()
        try:
            results.append(memoizer.get_or_compute("hot", compute))
        except BaseException as exc:  # noqa: BLE001
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(callers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert compute_calls == 1
    assert results == ["expensive"] * callers


def test_producer_rechecks_after_winning_lock(cache_root: Path) -> None:
    """A value published between the miss and the lock is returned as is."""

    class LatePublishStore(FileStore):
        def __init__(self, root: Path) -> None:
            super().__init__(root)
            self.missed = False

        def get(self, key: str, default: Any = None) -> Any:
            if key == "k" and not self.missed:
                self.missed = True
                # Another producer finishes right after this caller's lookup.
                self.set("k", "published")
                return default
            return super().get(key, default)

    store = LatePublishStore(cache_root)

    def compute(set_ttl: TtlSetter) -> str:
        raise AssertionError("compute should not run once the value is published")

    assert Memoizer(store).get_or_compute("k", compute) == "published"
    assert store.missed is True
    assert not store.path(lock_key("k")).exists()
