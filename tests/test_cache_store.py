"""Tests for cache stores."""

import json
import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from calsync.core.cache import CacheKey, CacheStore, JsonFileCacheStore, MemoryCacheStore


class TestCacheKey:
    def test_str(self) -> None:
        assert str(CacheKey("primary", "studio-1")) == "event studio-1 for primary"

    def test_distinct_per_destination(self) -> None:
        assert str(CacheKey("a", "studio-1")) != str(CacheKey("b", "studio-1"))


class TestMemoryCacheStore:
    """Tests for the in-process store."""

    def test_put_get(self, clock) -> None:
        store = MemoryCacheStore(clock=clock)
        store.put("k", "v", ttl_seconds=60)
        assert store.get("k") == "v"
        assert store.writes == 1

    def test_missing_key(self, clock) -> None:
        assert MemoryCacheStore(clock=clock).get("nope") is None

    def test_entry_expires(self, clock) -> None:
        """Test entries disappear once their TTL has elapsed."""
        store = MemoryCacheStore(clock=clock)
        store.put("k", "v", ttl_seconds=60)
        clock.advance(59)
        assert store.get("k") == "v"
        clock.advance(1)
        assert store.get("k") is None
        assert len(store) == 0

    def test_overwrite_refreshes_ttl(self, clock) -> None:
        store = MemoryCacheStore(clock=clock)
        store.put("k", "old", ttl_seconds=60)
        clock.advance(50)
        store.put("k", "new", ttl_seconds=60)
        clock.advance(50)
        assert store.get("k") == "new"

    def test_satisfies_protocol(self, clock) -> None:
        assert isinstance(MemoryCacheStore(clock=clock), CacheStore)


class TestJsonFileCacheStore:
    """Tests for the JSON-file store."""

    def test_persists_across_instances(self, tmp_path, clock) -> None:
        path = tmp_path / "cache" / "cache.json"
        store = JsonFileCacheStore(path, clock=clock)
        store.put("k", '{"a":1}', ttl_seconds=60)
        store.flush()

        assert path.exists()
        assert JsonFileCacheStore(path, clock=clock).get("k") == '{"a":1}'

    def test_file_layout(self, tmp_path, clock) -> None:
        path = tmp_path / "cache.json"
        JsonFileCacheStore(path, clock=clock, save_every=1).put("k", "v", ttl_seconds=60)

        data = json.loads(path.read_text())
        assert data == {"entries": {"k": {"value": "v", "expires_at": 1060.0}}}

    def test_expired_entries_ignored_and_dropped(self, tmp_path, clock) -> None:
        """Test expired entries are not returned and are not written back."""
        path = tmp_path / "cache.json"
        store = JsonFileCacheStore(path, clock=clock, save_every=1)
        store.put("old", "v", ttl_seconds=10)
        clock.advance(20)
        assert store.get("old") is None

        store.put("new", "v", ttl_seconds=10)
        assert set(json.loads(path.read_text())["entries"]) == {"new"}

    def test_missing_file_is_empty(self, tmp_path, clock) -> None:
        assert JsonFileCacheStore(tmp_path / "none.json", clock=clock).get("k") is None

    def test_corrupt_file_is_ignored(self, tmp_path, clock, caplog) -> None:
        """Test an unreadable cache starts empty instead of failing the run."""
        path = tmp_path / "cache.json"
        path.write_text("{not json")
        caplog.set_level(logging.WARNING, logger="calsync.core.cache.file")

        store = JsonFileCacheStore(path, clock=clock)
        assert store.get("k") is None
        assert "Ignoring unreadable cache" in caplog.text

        store.put("k", "v", ttl_seconds=60)
        store.flush()
        assert JsonFileCacheStore(path, clock=clock).get("k") == "v"

    def test_clear_removes_file(self, tmp_path, clock) -> None:
        path = tmp_path / "cache.json"
        store = JsonFileCacheStore(path, clock=clock)
        store.put("k", "v", ttl_seconds=60)
        store.flush()

        store.clear()

        assert not path.exists()
        assert store.get("k") is None

    def test_clear_drops_buffered_puts(self, tmp_path, clock) -> None:
        path = tmp_path / "cache.json"
        store = JsonFileCacheStore(path, clock=clock)
        store.put("k", "v", ttl_seconds=60)

        store.clear()
        store.flush()

        assert not path.exists()

    def test_clear_without_file(self, tmp_path, clock) -> None:
        JsonFileCacheStore(tmp_path / "cache.json", clock=clock).clear()

    def test_no_temp_files_left_behind(self, tmp_path, clock) -> None:
        directory = tmp_path / "store"
        store = JsonFileCacheStore(directory / "cache.json", clock=clock, save_every=1)
        store.put("a", "1", ttl_seconds=60)
        store.put("b", "2", ttl_seconds=60)
        assert [p.name for p in directory.iterdir()] == ["cache.json"]

    def test_satisfies_protocol(self, tmp_path, clock) -> None:
        assert isinstance(JsonFileCacheStore(tmp_path / "c.json", clock=clock), CacheStore)


class TestJsonFileCacheStoreBuffering:
    """Tests for batching puts into few file writes."""

    def test_puts_buffered_until_flush(self, tmp_path, clock) -> None:
        path = tmp_path / "cache.json"
        store = JsonFileCacheStore(path, clock=clock)
        store.put("a", "1", ttl_seconds=60)
        store.put("b", "2", ttl_seconds=60)

        assert not path.exists()
        assert store.get("a") == "1"

        store.flush()
        assert set(json.loads(path.read_text())["entries"]) == {"a", "b"}

    def test_saves_every_n_puts(self, tmp_path, clock) -> None:
        """Test the file is rewritten once per batch, not once per put."""
        path = tmp_path / "cache.json"
        store = JsonFileCacheStore(path, clock=clock, save_every=3)

        with patch.object(store, "_save", wraps=store._save) as save:
            for n in range(7):
                store.put(f"k{n}", str(n), ttl_seconds=60)
            assert save.call_count == 2

            store.flush()
            assert save.call_count == 3

        assert len(json.loads(path.read_text())["entries"]) == 7

    def test_flush_without_puts_writes_nothing(self, tmp_path, clock) -> None:
        path = tmp_path / "cache.json"
        store = JsonFileCacheStore(path, clock=clock)

        store.flush()

        assert not path.exists()

    def test_rejects_non_positive_save_every(self, tmp_path, clock) -> None:
        with pytest.raises(ValueError, match="save_every"):
            JsonFileCacheStore(tmp_path / "cache.json", clock=clock, save_every=0)

    def test_failed_save_removes_temp_file(self, tmp_path, clock) -> None:
        """Test a save that cannot be moved into place leaves no temp file."""
        directory = tmp_path / "store"
        store = JsonFileCacheStore(directory / "cache.json", clock=clock)
        store.put("a", "1", ttl_seconds=60)

        with patch.object(Path, "replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError, match="disk full"):
                store.flush()

        assert list(directory.iterdir()) == []

        # The entries are still buffered and saved by the next flush
        store.flush()
        assert JsonFileCacheStore(directory / "cache.json", clock=clock).get("a") == "1"
