"""Unit tests for the local cache."""

import json
import threading
from unittest.mock import patch

import pytest

from replica.local_cache import LocalCache


class TestLocalCacheOperations:
    """Test basic cache operations."""

    def test_save_then_load_returns_value(self, tmp_path):
        cache = LocalCache(cache_path=str(tmp_path / "cache.json"))

        cache.save("entries", [{"id": "1"}])

        assert cache.load("entries") == [{"id": "1"}]

    def test_missing_key_returns_none(self, tmp_path):
        cache = LocalCache(cache_path=str(tmp_path / "cache.json"))

        assert cache.load("nothing") is None

    def test_save_replaces_whole_value(self, tmp_path):
        cache = LocalCache(cache_path=str(tmp_path / "cache.json"))

        cache.save("entries", [1, 2, 3])
        cache.save("entries", [4])

        assert cache.load("entries") == [4]

    def test_remove_deletes_key(self, tmp_path):
        cache = LocalCache(cache_path=str(tmp_path / "cache.json"))
        cache.save("profile", {"name": "Alice"})

        cache.remove("profile")
        cache.remove("profile")

        assert cache.load("profile") is None
        assert cache.keys() == []


class TestLocalCachePersistence:
    """Test cache persistence to disk."""

    def test_cache_survives_restart(self, tmp_path):
        cache_file = tmp_path / "cache.json"
        LocalCache(cache_path=str(cache_file)).save("activities", [{"id": "a"}])

        reopened = LocalCache(cache_path=str(cache_file))

        assert reopened.load("activities") == [{"id": "a"}]

    def test_creates_parent_directories(self, tmp_path):
        cache_file = tmp_path / "nested" / "dir" / "cache.json"
        cache = LocalCache(cache_path=str(cache_file))

        cache.save("k", "v")

        assert cache_file.exists()
        assert json.loads(cache_file.read_text()) == {"k": "v"}

    def test_corrupt_file_starts_empty(self, tmp_path):
        cache_file = tmp_path / "cache.json"
        cache_file.write_text("{ not json")

        cache = LocalCache(cache_path=str(cache_file))

        assert cache.keys() == []

    def test_non_object_file_starts_empty(self, tmp_path):
        cache_file = tmp_path / "cache.json"
        cache_file.write_text("[1, 2, 3]")

        cache = LocalCache(cache_path=str(cache_file))

        assert cache.keys() == []

    def test_failed_write_keeps_memory_copy(self, tmp_path):
        cache = LocalCache(cache_path=str(tmp_path / "cache.json"))

        with patch("replica.local_cache.os.replace", side_effect=OSError("disk full")):
            cache.save("entries", [{"id": "1"}])

        assert cache.load("entries") == [{"id": "1"}]
        assert list(tmp_path.glob("*.tmp")) == []

    def test_unserializable_value_raises(self, tmp_path):
        cache = LocalCache(cache_path=str(tmp_path / "cache.json"))

        with pytest.raises(TypeError):
            cache.save("bad", {"when": object()})

    def test_memory_only_cache_writes_nothing(self, tmp_path):
        cache = LocalCache(cache_path=None)

        cache.save("entries", [1])

        assert cache.path is None
        assert cache.load("entries") == [1]
        assert list(tmp_path.iterdir()) == []


class TestLocalCacheConcurrency:
    """Test thread safety."""

    def test_concurrent_saves_do_not_corrupt_file(self, tmp_path):
        cache_file = tmp_path / "cache.json"
        cache = LocalCache(cache_path=str(cache_file))

        def writer(n):
            for i in range(20):
                cache.save(f"key-{n}", i)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        data = json.loads(cache_file.read_text())
        assert {data[f"key-{n}"] for n in range(4)} == {19}
