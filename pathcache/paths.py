"""Map cache keys onto entry file paths."""

from __future__ import annotations

import hashlib
import os
import re
from collections.abc import Iterator
from pathlib import Path

__all__ = ["PathMapper", "normalize_root"]

_DIGEST_NAME = re.compile(r"^[0-9a-f]{32}$")
_TEMPORARY_NAME = re.compile(r"^\.[0-9a-f]{32}\.[0-9a-f]+\.tmp$")
_FOREIGN_SEPARATOR = "\\" if os.sep == "/" else "/"


def normalize_root(root: Path | str) -> Path:
    """Return ``root`` with native separators, expanded and made absolute."""
    raw = os.fspath(root)
    if not raw:
        raise ValueError("Cache root must be a non-empty path.")
    if _FOREIGN_SEPARATOR in raw:
        raw = raw.replace(_FOREIGN_SEPARATOR, os.sep)
    stripped = raw.rstrip(os.sep) or os.sep
    return Path(stripped).expanduser().resolve()


class PathMapper:
    """Derive a deterministic file path for every cache key under one root."""

    def __init__(self, root: Path | str) -> None:
        self._root = normalize_root(root)
        self._root.mkdir(mode=0o777, parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def path(self, key: str) -> Path:
        """Return ``root / md5(key)``."""
        digest = hashlib.md5(key.encode("utf-8")).hexdigest()
        return self._root / digest

    def iter_entries(self) -> Iterator[Path]:
        """Yield entry files, skipping temporaries and anything foreign."""
        try:
            children = list(self._root.iterdir())
        except FileNotFoundError:
            return
        for child in children:
            if _DIGEST_NAME.match(child.name) and child.is_file():
                yield child

    def iter_temporaries(self) -> Iterator[Path]:
        """Yield temporary files left behind by writers that never renamed them."""
        try:
            children = list(self._root.iterdir())
        except FileNotFoundError:
            return
        for child in children:
            if _TEMPORARY_NAME.match(child.name) and child.is_file():
                yield child
