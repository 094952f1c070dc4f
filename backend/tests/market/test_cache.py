"""Tests for CacheStore."""

from dashboard.market.cache import CacheStore


class _Clock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestCacheStore:
    """Unit tests for the CacheStore."""

    def test_set_and_get(self):
        """Test storing and reading back a payload."""
        clock = _Clock()
        cache = CacheStore(clock=clock)
        entry = cache.set("prices", {"BTC": 50_000.0})
        assert entry.payload == {"BTC": 50_000.0}
        assert entry.fetched_at == clock.now
        assert cache.get("prices") == entry

    def test_get_missing(self):
        """Test that an unknown key reads as None."""
        cache = CacheStore()
        assert cache.get("prices") is None

    def test_set_replaces_entry(self):
        """Test that a second set replaces the whole entry."""
        clock = _Clock()
        cache = CacheStore(clock=clock)
        first = cache.set("prices", "old")
        clock.now += 500
        second = cache.set("prices", "new")

        assert cache.get("prices") is second
        assert first.payload == "old"  # the old entry object is untouched
        assert second.fetched_at == first.fetched_at + 500

    def test_missing_key_is_stale(self):
        """Test that absence counts as stale."""
        cache = CacheStore()
        assert cache.is_stale("prices", ttl_ms=120_000)

    def test_staleness_boundary(self):
        """Test that an entry is stale once its age reaches the TTL."""
        clock = _Clock()
        cache = CacheStore(clock=clock)
        cache.set("prices", "data")

        clock.now += 119_999
        assert not cache.is_stale("prices", ttl_ms=120_000)
        clock.now += 1
        assert cache.is_stale("prices", ttl_ms=120_000)

    def test_age(self):
        """Test age in milliseconds."""
        clock = _Clock()
        cache = CacheStore(clock=clock)
        assert cache.age("prices") is None
        cache.set("prices", "data")
        clock.now += 2_500
        assert cache.age("prices") == 2_500

    def test_clear_one_key(self):
        """Test removing a single dataset."""
        cache = CacheStore()
        cache.set("prices", "p")
        cache.set("registry", "r")
        cache.clear("prices")
        assert cache.get("prices") is None
        assert cache.get("registry") is not None

    def test_clear_all(self):
        """Test removing every dataset."""
        cache = CacheStore()
        cache.set("prices", "p")
        cache.set("registry", "r")
        cache.clear()
        assert len(cache) == 0

    def test_clear_nonexistent(self):
        """Test clearing a key that doesn't exist."""
        cache = CacheStore()
        cache.clear("prices")  # Should not raise

    def test_version_increments(self):
        """Test that version counter increments on set and clear."""
        cache = CacheStore()
        v0 = cache.version
        cache.set("prices", "p")
        assert cache.version == v0 + 1
        cache.clear()
        assert cache.version == v0 + 2

    def test_len_and_contains(self):
        """Test __len__, __contains__ and keys()."""
        cache = CacheStore()
        assert len(cache) == 0
        cache.set("prices", "p")
        assert len(cache) == 1
        assert "prices" in cache
        assert "registry" not in cache
        assert cache.keys() == ["prices"]
