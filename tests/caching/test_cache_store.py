"""
Tests for the in-memory cache store.

============================================================
PURPOSE
============================================================
Verify absolute and sliding expiry, lazy eviction, validation
failures reported as results, and safe concurrent use.

============================================================
"""

import threading
from datetime import datetime, timezone

from caching import CacheStore
from core.clock import MockClock
from core.results import ErrorCode


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_store():
    clock = MockClock(NOW)
    return CacheStore(clock=clock), clock


# ============================================================
# BASIC OPERATIONS
# ============================================================

class TestBasicOperations:
    """Get, set, remove and clear."""

    def test_set_then_get(self):
        store, _ = make_store()

        assert store.set("data_News", [1, 2, 3], 5).success
        result = store.get("data_News")

        assert result.success
        assert result.value == [1, 2, 3]

    def test_miss_is_success_with_none(self):
        store, _ = make_store()

        result = store.get("missing")

        assert result.success
        assert result.value is None

    def test_empty_key_is_validation_failure(self):
        store, _ = make_store()

        assert store.get("").error.code == ErrorCode.VALIDATION
        assert store.set("", 1, 5).error.code == ErrorCode.VALIDATION
        assert store.remove("").error.code == ErrorCode.VALIDATION

    def test_non_positive_ttl_is_rejected(self):
        store, _ = make_store()

        assert store.set("k", 1, 0).error.code == ErrorCode.VALIDATION
        assert store.set("k", 1, -1).failed
        assert len(store) == 0

    def test_set_overwrites(self):
        store, _ = make_store()

        store.set("k", "old", 5)
        store.set("k", "new", 5)

        assert store.get("k").value == "new"
        assert len(store) == 1

    def test_remove(self):
        store, _ = make_store()
        store.set("k", 1, 5)

        assert store.remove("k").value is True
        assert store.remove("k").value is False
        assert store.get("k").value is None

    def test_clear_removes_every_key(self):
        store, _ = make_store()
        for i in range(4):
            store.set(f"key_{i}", i, 5)

        result = store.clear()

        assert result.value == 4
        assert len(store) == 0
        assert store.keys() == []


# ============================================================
# EXPIRY
# ============================================================

class TestExpiry:
    """Absolute and sliding expiration."""

    def test_entry_expires_after_sliding_window_without_access(self):
        store, clock = make_store()
        store.set("k", "v", 10)

        clock.advance(minutes=4, seconds=59)
        assert "k" in store

        clock.advance(seconds=1)
        assert store.get("k").value is None
        assert "k" not in store.keys()

    def test_access_renews_sliding_window(self):
        store, clock = make_store()
        store.set("k", "v", 10)

        clock.advance(minutes=4)
        assert store.get("k").value == "v"

        clock.advance(minutes=4)
        assert store.get("k").value == "v"

    def test_sliding_renewal_never_exceeds_absolute_expiry(self):
        store, clock = make_store()
        store.set("k", "v", 10)

        for _ in range(4):
            clock.advance(minutes=2)
            assert store.get("k").value == "v"

        # 8 minutes in; sliding renewal would reach 13 but the cap is 10
        clock.advance(minutes=2)
        assert store.get("k").value is None

    def test_purge_expired(self):
        store, clock = make_store()
        store.set("short", 1, 2)
        store.set("long", 2, 20)

        clock.advance(minutes=3)
        result = store.purge_expired()

        assert result.value == 1
        assert store.keys() == ["long"]

    def test_stats_track_hits_and_misses(self):
        store, _ = make_store()
        store.set("k", 1, 5)

        store.get("k")
        store.get("other")

        stats = store.stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 50.0


# ============================================================
# CONCURRENCY
# ============================================================

class TestConcurrency:
    """Shared use from several threads."""

    def test_concurrent_set_and_get(self):
        store, _ = make_store()
        errors = []

        def worker(n):
            try:
                for i in range(200):
                    key = f"data_{n}_{i % 10}"
                    store.set(key, i, 5)
                    result = store.get(key)
                    assert result.success
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(store) == 80
