"""Tests for the TTL + LRU search result cache."""

from __future__ import annotations

import pytest
from factories import make_result

from symbol_atlas.schema import SearchKind
from symbol_atlas.search.cache import SearchCache, make_cache_key


class _Clock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return _Clock()


class TestCacheKey:
    def test_query_lowercased(self):
        assert make_cache_key("GetActor", []) == "text:getactor|"

    def test_kinds_sorted(self):
        key = make_cache_key("x", [SearchKind.PROPERTY, SearchKind.CLASS])
        assert key == "text:x|class,property"

    def test_regex_queries_share_slot(self):
        assert make_cache_key("/^Get/", [], regex=True) == make_cache_key("/Set$/i", [], regex=True) == "regex:*|"

    def test_plain_star_query_never_shares_regex_slot(self):
        assert make_cache_key("*", []) != make_cache_key("/GetName/", [], regex=True)


class TestSearchCache:
    def test_miss_then_hit(self, clock):
        cache = SearchCache(ttl_s=20.0, clock=clock)
        assert cache.get("k") is None
        stored = cache.put("k", [make_result("A")])
        assert cache.get("k") == stored
        assert "k" in cache
        assert len(cache) == 1

    def test_put_freezes_results(self, clock):
        cache = SearchCache(clock=clock)
        results = [make_result("A")]
        stored = cache.put("k", results)
        results.append(make_result("B", 1))
        assert stored == (make_result("A"),)

    def test_expiry(self, clock):
        cache = SearchCache(ttl_s=20.0, clock=clock)
        cache.put("k", [make_result("A")])
        clock.now += 20.0
        assert cache.get("k") is None
        assert "k" not in cache

    def test_hit_refreshes_ttl(self, clock):
        cache = SearchCache(ttl_s=20.0, clock=clock)
        cache.put("k", [make_result("A")])
        clock.now += 15.0
        assert cache.get("k") is not None
        clock.now += 15.0
        assert cache.get("k") is not None

    def test_evicts_least_recently_used(self, clock):
        cache = SearchCache(capacity=2, clock=clock)
        cache.put("a", [])
        cache.put("b", [])
        cache.get("a")
        cache.put("c", [])
        assert "a" in cache
        assert "b" not in cache
        assert "c" in cache

    def test_replace_does_not_evict(self, clock):
        cache = SearchCache(capacity=2, clock=clock)
        cache.put("a", [])
        cache.put("b", [])
        cache.put("b", [make_result("B")])
        assert len(cache) == 2
        assert cache.get("b") == (make_result("B"),)

    def test_clear(self, clock):
        cache = SearchCache(clock=clock)
        cache.put("a", [])
        cache.clear()
        assert len(cache) == 0

    def test_invalid_capacity(self):
        with pytest.raises(ValueError, match="capacity"):
            SearchCache(capacity=0)
