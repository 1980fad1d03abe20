"""Package-wide type definitions."""

from __future__ import annotations

import os
import secrets
import socket
from dataclasses import dataclass
from typing import Any

# Expiry sentinel meaning the entry never expires.
NEVER: float = 0.0


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """A decoded entry file: the stored value and its absolute expiry."""

    value: Any
    expires_at: float = NEVER

    def is_expired(self, now: float) -> bool:
        """Return True once a finite expiry lies in the past."""
        return self.expires_at != NEVER and self.expires_at < now

    def ttl_remaining(self, now: float) -> float | None:
        """Return seconds until expiry, or ``None`` for entries that never expire."""
        if self.expires_at == NEVER:
            return None
        return max(self.expires_at - now, 0.0)


@dataclass(frozen=True, slots=True)
class LockToken:
    """Proof of a successful lock acquisition."""

    name: str
    owner: str
    expires_at: float

    def to_record(self) -> dict[str, Any]:
        """Convert the token into the mapping stored in the lock entry."""
        return {"expires_at": self.expires_at, "owner": self.owner}


def new_owner_id() -> str:
    """Return a holder identifier unique across hosts and processes."""
    return f"{socket.gethostname()}:{os.getpid()}:{secrets.token_hex(8)}"
