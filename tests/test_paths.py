"""Tests for key to path mapping."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path

import pytest

from pathcache.paths import PathMapper, normalize_root


def test_path_is_md5_of_key(tmp_path: Path) -> None:
    mapper = PathMapper(tmp_path)
    expected = hashlib.md5("user:42".encode("utf-8")).hexdigest()
    assert mapper.path("user:42") == tmp_path.resolve() / expected


def test_path_is_deterministic_and_distinct(tmp_path: Path) -> None:
    mapper = PathMapper(tmp_path)
    other = PathMapper(tmp_path)
    assert mapper.path("a") == other.path("a")
    assert mapper.path("a") != mapper.path("b")


def test_root_is_created(tmp_path: Path) -> None:
    root = tmp_path / "nested" / "cache"
    mapper = PathMapper(root)
    assert root.is_dir()
    assert mapper.root == root.resolve()
    # Constructing again over an existing directory is fine.
    PathMapper(root)


def test_trailing_separator_is_stripped(tmp_path: Path) -> None:
    mapper = PathMapper(f"{tmp_path}{os.sep}{os.sep}")
    assert mapper.root == tmp_path.resolve()


@pytest.mark.skipif(os.sep != "/", reason="POSIX separator normalization")
def test_foreign_separators_are_normalized(tmp_path: Path) -> None:
    raw = str(tmp_path) + "\\store\\"
    assert normalize_root(raw) == (tmp_path / "store").resolve()


def test_empty_root_is_rejected() -> None:
    with pytest.raises(ValueError, match="non-empty"):
        normalize_root("")


def test_iter_entries_skips_temporaries(tmp_path: Path) -> None:
    mapper = PathMapper(tmp_path)
    entry = mapper.path("key")
    entry.write_bytes(b"x")
    (tmp_path / f".{entry.name}.abc.tmp").write_bytes(b"x")
    (tmp_path / "README").write_text("not an entry")
    assert list(mapper.iter_entries()) == [entry]


def test_iter_temporaries_lists_only_write_leftovers(tmp_path: Path) -> None:
    mapper = PathMapper(tmp_path)
    entry = mapper.path("key")
    entry.write_bytes(b"x")
    leftover = tmp_path / f".{entry.name}.{'0f' * 16}.tmp"
    leftover.write_bytes(b"x")
    (tmp_path / "notes.tmp").write_text("not ours")
    assert list(mapper.iter_temporaries()) == [leftover]
