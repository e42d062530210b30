"""Tests for the ResponseCache module."""

from __future__ import annotations

from pathlib import Path

import pytest

from kingdomapi.cache import ResponseCache
from kingdomapi.models import CacheConfig


@pytest.fixture()
def cache(clock) -> ResponseCache:
    """In-memory cache with a 300s default TTL driven by the fake clock."""
    return ResponseCache(CacheConfig(enabled=True, ttl_seconds=300), clock=clock)


@pytest.fixture()
def disabled_cache(clock) -> ResponseCache:
    return ResponseCache(CacheConfig(enabled=False), clock=clock)


# ------------------------------------------------------------------ #
# Key construction
# ------------------------------------------------------------------ #


class TestMakeKey:
    def test_endpoint_only_without_params(self) -> None:
        assert ResponseCache.make_key("/content/favorites") == "/content/favorites"
        assert ResponseCache.make_key("/content/favorites", {}) == "/content/favorites"

    def test_param_order_does_not_matter(self) -> None:
        a = ResponseCache.make_key("/content/templates", {"platform": "ig", "category": "x"})
        b = ResponseCache.make_key("/content/templates", {"category": "x", "platform": "ig"})
        assert a == b

    def test_nested_values_are_canonicalised(self) -> None:
        a = ResponseCache.make_key("/content/generate", {"settings": {"b": 1, "a": 2}})
        b = ResponseCache.make_key("/content/generate", {"settings": {"a": 2, "b": 1}})
        assert a == b

    def test_different_params_give_different_keys(self) -> None:
        a = ResponseCache.make_key("/content/templates", {"platform": "ig"})
        b = ResponseCache.make_key("/content/templates", {"platform": "tiktok"})
        assert a != b


# ------------------------------------------------------------------ #
# Core get/set behaviour
# ------------------------------------------------------------------ #


class TestGetSet:
    def test_set_and_get(self, cache: ResponseCache) -> None:
        cache.set("/users/profile", {"id": "u1"})
        assert cache.get("/users/profile") == {"id": "u1"}

    def test_miss_returns_default(self, cache: ResponseCache) -> None:
        assert cache.get("/missing") is None
        assert cache.get("/missing", "fallback") == "fallback"

    def test_cached_none_is_distinguishable_with_sentinel(self, cache: ResponseCache) -> None:
        sentinel = object()
        cache.set("/empty", None)
        assert cache.get("/empty", sentinel) is None

    def test_set_replaces_existing_entry(self, cache: ResponseCache, clock) -> None:
        cache.set("/k", "old", ttl=10)
        clock.advance(5)
        cache.set("/k", "new", ttl=10)
        clock.advance(8)
        assert cache.get("/k") == "new"

    def test_mutating_returned_value_leaves_entry_intact(self, cache: ResponseCache) -> None:
        cache.set("/templates", {"items": [{"id": "t1"}]})

        first = cache.get("/templates")
        first["items"].append({"id": "t2"})

        assert cache.get("/templates") == {"items": [{"id": "t1"}]}

    def test_mutating_stored_value_leaves_entry_intact(self, cache: ResponseCache) -> None:
        payload = {"items": [{"id": "t1"}]}
        cache.set("/templates", payload)

        payload["items"].clear()

        assert cache.get("/templates") == {"items": [{"id": "t1"}]}


# ------------------------------------------------------------------ #
# TTL expiry
# ------------------------------------------------------------------ #


class TestExpiry:
    def test_entry_live_before_expiry(self, cache: ResponseCache, clock) -> None:
        cache.set("/k", 1, ttl=60)
        clock.advance(59.9)
        assert cache.get("/k") == 1

    def test_entry_expires_at_exact_boundary(self, cache: ResponseCache, clock) -> None:
        cache.set("/k", 1, ttl=60)
        clock.advance(60)
        assert cache.get("/k") is None
        assert len(cache) == 0

    def test_default_ttl_from_config(self, cache: ResponseCache, clock) -> None:
        cache.set("/k", 1)
        clock.advance(299)
        assert cache.contains("/k")
        clock.advance(1)
        assert not cache.contains("/k")

    def test_purge_expired(self, cache: ResponseCache, clock) -> None:
        cache.set("/short", 1, ttl=10)
        cache.set("/long", 2, ttl=100)
        clock.advance(50)
        assert cache.purge_expired() == 1
        assert cache.keys() == ["/long"]


# ------------------------------------------------------------------ #
# Invalidation
# ------------------------------------------------------------------ #


class TestClear:
    def test_clear_all(self, cache: ResponseCache) -> None:
        cache.set("/a", 1)
        cache.set("/b", 2)
        assert cache.clear() == 2
        assert len(cache) == 0

    def test_clear_by_substring(self, cache: ResponseCache) -> None:
        cache.set("/content/favorites", [])
        cache.set(ResponseCache.make_key("/content/favorites", {"page": 2}), [])
        cache.set("/content/templates", [])
        assert cache.clear("/content/favorites") == 2
        assert cache.keys() == ["/content/templates"]

    def test_invalidate_single_key(self, cache: ResponseCache) -> None:
        cache.set("/a", 1)
        assert cache.invalidate("/a") is True
        assert cache.invalidate("/a") is False


# ------------------------------------------------------------------ #
# Disabled cache and stats
# ------------------------------------------------------------------ #


class TestDisabledCache:
    def test_set_is_noop(self, disabled_cache: ResponseCache) -> None:
        disabled_cache.set("/a", 1)
        assert disabled_cache.get("/a") is None
        assert len(disabled_cache) == 0

    def test_enabled_property(self, disabled_cache: ResponseCache) -> None:
        assert disabled_cache.enabled is False


class TestStats:
    def test_counts_hits_and_misses(self, cache: ResponseCache) -> None:
        cache.set("/a", 1)
        cache.get("/a")
        cache.get("/a")
        cache.get("/b")
        stats = cache.stats()
        assert stats["hits"] == 2
        assert stats["misses"] == 1
        assert stats["size"] == 1
        assert stats["keys"] == ["/a"]
        assert stats["persistent"] is False
        assert stats["ttl_seconds"] == 300


# ------------------------------------------------------------------ #
# Persistent storage
# ------------------------------------------------------------------ #


class TestPersistentCache:
    def test_entries_survive_reopen(self, tmp_path: Path, clock) -> None:
        config = CacheConfig(persist=True, ttl_seconds=300)
        first = ResponseCache(config, clock=clock, cache_dir=tmp_path)
        first.set("/content/templates", [{"id": "t1"}])
        first.close()

        second = ResponseCache(config, clock=clock, cache_dir=tmp_path)
        try:
            assert second.get("/content/templates") == [{"id": "t1"}]
            assert second.stats()["persistent"] is True
            assert (tmp_path / "responses").is_dir()
        finally:
            second.close()

    def test_persisted_entry_still_expires(self, tmp_path: Path, clock) -> None:
        config = CacheConfig(persist=True)
        cache = ResponseCache(config, clock=clock, cache_dir=tmp_path)
        try:
            cache.set("/k", "v", ttl=5)
            clock.advance(5)
            assert cache.get("/k") is None
            assert len(cache) == 0
        finally:
            cache.close()

    def test_clear_pattern_on_disk(self, tmp_path: Path, clock) -> None:
        cache = ResponseCache(CacheConfig(persist=True), clock=clock, cache_dir=tmp_path)
        try:
            cache.set("/content/favorites", [])
            cache.set("/health", {})
            assert cache.clear("favorites") == 1
            assert cache.keys() == ["/health"]
        finally:
            cache.close()
