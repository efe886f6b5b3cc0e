"""In-process cache store. Entries live only as long as the process."""

from __future__ import annotations

import time
from collections.abc import Callable


class MemoryCacheStore:
    """Dictionary-backed cache with per-entry expiry."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}
        self.writes = 0

    def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def put(self, key: str, value: str, ttl_seconds: int) -> None:
        self._entries[key] = (value, self._clock() + ttl_seconds)
        self.writes += 1

    def flush(self) -> None:
        pass

    def __len__(self) -> int:
        return len(self._entries)
