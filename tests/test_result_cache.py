"""
Tests for the manual check result cache.
"""

from datetime import timedelta

from serptrack.persistence.cache import ResultCache, make_cache_key


KEY = make_cache_key("brand-1", "tokopedia", "id", "id", "desktop")


class TestResultCache:
    """Test ResultCache."""

    def test_hit_within_ttl(self, clock):
        cache = ResultCache(ttl_seconds=120, clock=clock)
        cache.set(KEY, {"value": 1})
        clock.now += timedelta(seconds=119)
        assert cache.get(KEY) == {"value": 1}

    def test_expired_after_ttl(self, clock):
        cache = ResultCache(ttl_seconds=120, clock=clock)
        cache.set(KEY, {"value": 1})
        clock.now += timedelta(seconds=120)
        assert cache.get(KEY) is None
        assert len(cache) == 0

    def test_key_includes_every_parameter(self, clock):
        cache = ResultCache(clock=clock)
        cache.set(KEY, "desktop result")
        assert cache.get(make_cache_key("brand-1", "tokopedia", "id", "id", "mobile")) is None
        assert cache.get(make_cache_key("brand-1", "tokopedia", "sg", "id", "desktop")) is None
        assert cache.get(make_cache_key("brand-2", "tokopedia", "id", "id", "desktop")) is None
        assert cache.get(make_cache_key("brand-1", " tokopedia ", "id", "id", "desktop")) == "desktop result"

    def test_disabled(self, clock):
        cache = ResultCache(ttl_seconds=0, clock=clock)
        cache.set(KEY, "x")
        assert cache.get(KEY) is None
        assert not cache.enabled

    def test_expired_entries_purged_on_write(self, clock):
        cache = ResultCache(ttl_seconds=10, clock=clock)
        cache.set(KEY, "old")
        clock.now += timedelta(seconds=30)
        cache.set(make_cache_key("b", "q", "id", "id", "desktop"), "new")
        assert len(cache) == 1

    def test_stats(self, clock):
        cache = ResultCache(clock=clock)
        cache.get(KEY)
        cache.set(KEY, "x")
        cache.get(KEY)
        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 50.0

    def test_clear(self, clock):
        cache = ResultCache(clock=clock)
        cache.set(KEY, "x")
        assert cache.clear() == 1
        assert cache.get(KEY) is None
