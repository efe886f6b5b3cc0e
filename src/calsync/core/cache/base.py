"""
Cache store protocol.

The cache is an advisory key-value store with expiry. Losing entries only
causes redundant re-applies, never incorrect ones, because the sink keys its
mutations by the same stable id.
"""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@runtime_checkable
class CacheStore(Protocol):
    """Key-value store whose entries expire after a per-entry TTL."""

    def get(self, key: str) -> str | None:
        """
        Get the value stored under ``key``.

        Returns:
            The stored value, or None if absent or expired
        """
        ...

    def put(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store ``value`` under ``key`` for ``ttl_seconds``."""
        ...

    def flush(self) -> None:
        """Persist buffered puts. Called once at the end of every run."""
        ...


@dataclass(frozen=True)
class CacheKey:
    """Identity of one synced event in one destination."""

    destination: str
    stable_id: str

    def __str__(self) -> str:
        return f"event {self.stable_id} for {self.destination}"
