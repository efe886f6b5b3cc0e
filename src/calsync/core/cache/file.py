"""
JSON-file cache store.

Persists cache entries across scheduled runs at ``.calsync/cache.json``.
Expired entries are dropped on load and on every save. Puts are buffered and
written out every ``save_every`` puts and on ``flush()``, so a run does not
rewrite the whole file once per synced event. Writes are atomic (write to a
temp file in the same directory, then rename), so a crash never leaves a
half-written cache behind.

Example:
    >>> store = JsonFileCacheStore(Path(".calsync/cache.json"))
    >>> store.put("event abc for primary", '{"id":"abc"}', ttl_seconds=7200)
    >>> store.flush()
    >>> store.get("event abc for primary")
    '{"id":"abc"}'
"""

from __future__ import annotations

import json
import logging
import tempfile
import time
from collections.abc import Callable
from pathlib import Path

logger = logging.getLogger(__name__)


class JsonFileCacheStore:
    """
    Cache store backed by a single JSON file.

    File layout::

        {"entries": {"<key>": {"value": "<value>", "expires_at": 1700000000.0}}}
    """

    def __init__(
        self,
        path: Path,
        clock: Callable[[], float] = time.time,
        save_every: int = 100,
    ) -> None:
        """
        Initialize the store.

        Args:
            path: Location of the cache file (created on first write)
            clock: Wall-clock time source; entries outlive the process, so
                this must be epoch seconds rather than a monotonic reading
            save_every: Write the file after this many unsaved puts

        Raises:
            ValueError: If save_every is less than 1
        """
        if save_every < 1:
            raise ValueError(f"save_every must be >= 1, got {save_every}")
        self.path = Path(path)
        self._clock = clock
        self.save_every = save_every
        self._entries: dict[str, dict[str, object]] | None = None
        self._unsaved = 0

    def _load(self) -> dict[str, dict[str, object]]:
        if self._entries is not None:
            return self._entries

        entries: dict[str, dict[str, object]] = {}
        if self.path.exists():
            try:
                with open(self.path, encoding="utf-8") as f:
                    data = json.load(f)
                raw = data.get("entries", {}) if isinstance(data, dict) else {}
                if isinstance(raw, dict):
                    entries = {k: v for k, v in raw.items() if isinstance(v, dict)}
            except (json.JSONDecodeError, OSError) as e:
                # The cache is advisory: start empty and re-apply everything
                logger.warning("Ignoring unreadable cache at %s: %s", self.path, e)

        now = self._clock()
        self._entries = {
            k: v for k, v in entries.items() if _expires_at(v) > now
        }
        return self._entries

    def get(self, key: str) -> str | None:
        entry = self._load().get(key)
        if entry is None or _expires_at(entry) <= self._clock():
            return None
        value = entry.get("value")
        return value if isinstance(value, str) else None

    def put(self, key: str, value: str, ttl_seconds: int) -> None:
        entries = self._load()
        entries[key] = {"value": value, "expires_at": self._clock() + ttl_seconds}
        self._unsaved += 1
        if self._unsaved >= self.save_every:
            self._save()

    def flush(self) -> None:
        """Write buffered puts to disk. Does nothing when all puts are saved."""
        if self._unsaved:
            self._save()

    def _save(self) -> None:
        entries = self._load()
        now = self._clock()
        live = {k: v for k, v in entries.items() if _expires_at(v) > now}
        self._entries = live

        self.path.parent.mkdir(parents=True, exist_ok=True)
        json_str = json.dumps({"entries": live}, sort_keys=True, separators=(",", ":"))
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=self.path.parent,
            delete=False,
            suffix=".tmp",
        ) as tmp:
            tmp_path = Path(tmp.name)
            try:
                tmp.write(json_str)
                tmp.flush()
            except BaseException:
                tmp.close()
                tmp_path.unlink(missing_ok=True)
                raise

        try:
            tmp_path.replace(self.path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
        self._unsaved = 0
        logger.debug("Saved %d cache entries to %s", len(live), self.path)

    def clear(self) -> None:
        """Drop every entry and remove the cache file."""
        self._entries = {}
        self._unsaved = 0
        if self.path.exists():
            self.path.unlink()


def _expires_at(entry: dict[str, object]) -> float:
    value = entry.get("expires_at", 0.0)
    return float(value) if isinstance(value, (int, float)) else 0.0
