"""Tests for meeting_summarizer.summaries.cache: fingerprints and eviction."""

import hashlib
from datetime import datetime, timedelta, timezone

import pytest

from meeting_summarizer.summaries.cache import SummaryCache, build_fingerprint


class TestBuildFingerprint:
    def test_matches_sha256_of_concatenation(self):
        """The key hashes transcript + length + lowercase boolean."""
        expected = hashlib.sha256("hello worldbrieftrue".encode("utf-8")).hexdigest()
        assert build_fingerprint("hello world", "brief", True) == expected

    def test_pure_function(self):
        """Identical inputs always map to the same key."""
        assert build_fingerprint("t", "detailed", False) == build_fingerprint("t", "detailed", False)

    def test_options_change_the_key(self):
        """Length and action item flags are part of the key."""
        keys = {
            build_fingerprint("t", "brief", True),
            build_fingerprint("t", "brief", False),
            build_fingerprint("t", "detailed", True),
            build_fingerprint("t", "detailed", False),
        }
        assert len(keys) == 4


class TestSummaryCache:
    def test_put_then_get(self):
        """Stored summaries come back with their creation time."""
        now = datetime(2025, 1, 1, tzinfo=timezone.utc)
        cache = SummaryCache(capacity=3, clock=lambda: now)
        cache.put("k", "summary")
        entry = cache.get("k")
        assert entry.summary == "summary"
        assert entry.created_at == now
        assert "k" in cache

    def test_missing_key_returns_none(self):
        """Unknown keys are a miss."""
        assert SummaryCache().get("nope") is None

    def test_eviction_bound_and_oldest_dropped(self):
        """101 inserts into a 100-entry cache drop only the first key."""
        cache = SummaryCache(capacity=100)
        for i in range(101):
            cache.put(f"key-{i}", f"summary-{i}")
            assert len(cache) <= 100
        assert len(cache) == 100
        assert cache.get("key-0") is None
        assert cache.get("key-1").summary == "summary-1"
        assert cache.get("key-100").summary == "summary-100"

    def test_lookup_does_not_refresh_order(self):
        """Eviction is by insertion order, not by recent access."""
        cache = SummaryCache(capacity=2)
        cache.put("a", "1")
        cache.put("b", "2")
        cache.get("a")
        cache.put("c", "3")
        assert "a" not in cache
        assert "b" in cache and "c" in cache

    def test_reinsert_keeps_position(self):
        """Overwriting a key updates its value but not its age."""
        times = iter([datetime(2025, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=i) for i in range(4)])
        cache = SummaryCache(capacity=2, clock=lambda: next(times))
        cache.put("a", "old")
        cache.put("b", "2")
        cache.put("a", "new")
        assert cache.get("a").summary == "new"
        cache.put("c", "3")
        assert "a" not in cache
        assert len(cache) == 2

    def test_clear(self):
        """clear empties the cache."""
        cache = SummaryCache()
        cache.put("a", "1")
        cache.clear()
        assert len(cache) == 0

    @pytest.mark.parametrize("capacity", [0, -1])
    def test_invalid_capacity(self, capacity):
        """Capacity must be positive."""
        with pytest.raises(ValueError):
            SummaryCache(capacity=capacity)
