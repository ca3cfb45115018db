"""Unit tests for the TTL caches."""

import sys
from pathlib import Path

# Add parent directory to path to import project modules
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from utils.cache import CacheRegistry, TTLCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestTTLCache:
    """Test TTLCache expiry and isolation."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def cache(self, clock):
        return TTLCache("test", default_ttl=60, clock=clock)

    def test_get_before_expiry(self, cache, clock):
        cache.set("k", {"v": 1})
        clock.now += 59
        assert cache.get("k") == {"v": 1}

    def test_expired_entry_is_a_miss_and_removed(self, cache, clock):
        cache.set("k", {"v": 1})
        clock.now += 60
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_explicit_ttl_overrides_default(self, cache, clock):
        cache.set("short", "x", ttl=5)
        cache.set("long", "y")
        clock.now += 10
        assert cache.get("short") is None
        assert cache.get("long") == "y"

    def test_values_are_copied(self, cache):
        value = {"items": [1, 2]}
        cache.set("k", value)
        value["items"].append(3)

        fetched = cache.get("k")
        assert fetched == {"items": [1, 2]}
        fetched["items"].append(99)
        assert cache.get("k") == {"items": [1, 2]}

    def test_has_respects_expiry(self, cache, clock):
        cache.set("k", 1)
        assert cache.has("k")
        clock.now += 61
        assert not cache.has("k")

    def test_delete(self, cache):
        cache.set("k", 1)
        assert cache.delete("k") is True
        assert cache.delete("k") is False

    def test_delete_matching(self, cache):
        cache.set("plot::SW1A1AA::10", 1)
        cache.set("marketData::SW1A1AA::3::flat", 2)
        cache.set("marketData::E11AA::2::flat", 3)
        assert cache.delete_matching("SW1A1AA") == 2
        assert cache.get("marketData::E11AA::2::flat") == 3


class TestCacheRegistry:
    """Test the per-class cache registry."""

    def test_default_ttls(self):
        caches = CacheRegistry()
        assert caches.property.default_ttl == 86400
        assert caches.schools.default_ttl == 7 * 86400
        assert caches.plot_size.default_ttl == 30 * 86400

    def test_ttl_overrides(self):
        caches = CacheRegistry(ttl_overrides={"property": 10})
        assert caches.property.default_ttl == 10
        assert caches.ai.default_ttl == 86400

    def test_bust_entity_clears_every_cache(self):
        caches = CacheRegistry()
        url = "https://www.rightmove.co.uk/properties/123"
        caches.property.set(url, {"id": "123"})
        caches.ai.set(f"model::{url}", "text")
        caches.schools.set("10 downing street", {"success": True})

        assert caches.bust_entity(url) == 2
        assert caches.property.get(url) is None
        assert caches.schools.get("10 downing street") == {"success": True}
