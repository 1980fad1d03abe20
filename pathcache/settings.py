"""Application configuration loading."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from dotenv import load_dotenv

from .paths import normalize_root

_DEFAULT_ROOT: Final[str] = ".pathcache"
_DEFAULT_LOCK_HOLD: Final[float] = 3.0
_DEFAULT_LOCK_POLL_MS: Final[float] = 50.0
_DEFAULT_LOCK_TIMEOUT: Final[float] = 30.0

_CACHED_SETTINGS: Settings | None = None


@dataclass(frozen=True)
class Settings:
    """Runtime configuration derived from environment variables."""

    root: Path
    lock_hold: float
    lock_poll_ms: float
    lock_timeout: float | None
    strict_locks: bool


_TRUE_VALUES: Final[set[str]] = {"1", "true", "yes", "on"}
_FALSE_VALUES: Final[set[str]] = {"0", "false", "no", "off"}
_UNBOUNDED_VALUES: Final[set[str]] = {"none", "infinite", "inf", "unlimited"}


def _coerce_bool(value: str | None, *, default: bool) -> bool:
    """Convert common textual boolean representations to bool."""
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    return default


def _read_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def get_settings(*, force_reload: bool = False) -> Settings:
    """Load configuration, optionally reloading from the environment."""
    global _CACHED_SETTINGS  # noqa: PLW0603
    if not force_reload and _CACHED_SETTINGS is not None:
        return _CACHED_SETTINGS

    dotenv_override = os.getenv("PATHCACHE_DOTENV_PATH")
    if dotenv_override:
        load_dotenv(dotenv_override, override=True)
    else:
        dotenv_path = Path.cwd() / ".env"
        if dotenv_path.exists():
            load_dotenv(dotenv_path=dotenv_path)

    root = normalize_root(os.getenv("PATHCACHE_ROOT") or _DEFAULT_ROOT)
    lock_hold = _read_float("PATHCACHE_LOCK_HOLD", _DEFAULT_LOCK_HOLD)
    if lock_hold <= 0:
        raise ValueError("PATHCACHE_LOCK_HOLD must be positive")
    lock_poll_ms = max(_read_float("PATHCACHE_LOCK_POLL_MS", _DEFAULT_LOCK_POLL_MS), 0.0)

    timeout_raw = os.getenv("PATHCACHE_LOCK_TIMEOUT")
    if timeout_raw is not None and timeout_raw.strip().lower() in _UNBOUNDED_VALUES:
        lock_timeout: float | None = None
    else:
        lock_timeout = max(_read_float("PATHCACHE_LOCK_TIMEOUT", _DEFAULT_LOCK_TIMEOUT), 0.0)

    strict_locks = _coerce_bool(os.getenv("PATHCACHE_STRICT_LOCKS"), default=False)

    _CACHED_SETTINGS = Settings(
        root=root,
        lock_hold=lock_hold,
        lock_poll_ms=lock_poll_ms,
        lock_timeout=lock_timeout,
        strict_locks=strict_locks,
    )
    return _CACHED_SETTINGS
