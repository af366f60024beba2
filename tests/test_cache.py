"""
Tests for the result cache module.
"""

from adstats.cache import ResultCache
from adstats.extraction.extractor import ExtractedStats


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_stats(subject_id: str = "123", count: int = 5) -> ExtractedStats:
    return ExtractedStats(subject_id=subject_id, active_count=count, display_name="Acme")


class TestResultCache:
    """Tests for ResultCache class."""

    def test_miss_on_empty(self):
        cache = ResultCache(ttl=1800)
        assert cache.get(("123", "ALL")) is None
        assert cache.get_stats()["misses"] == 1

    def test_hit_within_ttl(self):
        """Test an entry stored 29 minutes ago is still served."""
        clock = FakeClock()
        cache = ResultCache(ttl=1800, clock=clock)
        stats = make_stats()

        cache.put(("123", "ALL"), stats)
        clock.advance(29 * 60)

        assert cache.get(("123", "ALL")) is stats
        assert cache.get_stats()["hits"] == 1

    def test_expired_after_ttl(self):
        """Test an entry stored 31 minutes ago is evicted."""
        clock = FakeClock()
        cache = ResultCache(ttl=1800, clock=clock)

        cache.put(("123", "ALL"), make_stats())
        clock.advance(31 * 60)

        assert cache.get(("123", "ALL")) is None
        assert cache.size == 0
        assert cache.get_stats()["evictions"] == 1

    def test_expired_exactly_at_ttl(self):
        """Test that an entry exactly ttl old is no longer fresh."""
        clock = FakeClock()
        cache = ResultCache(ttl=1800, clock=clock)

        cache.put(("123", "ALL"), make_stats())
        clock.advance(1800)

        assert cache.get(("123", "ALL")) is None

    def test_keys_include_region(self):
        cache = ResultCache(ttl=1800)
        cache.put(("123", "US"), make_stats())

        assert cache.get(("123", "US")) is not None
        assert cache.get(("123", "ALL")) is None

    def test_put_overwrites_and_refreshes(self):
        clock = FakeClock()
        cache = ResultCache(ttl=1800, clock=clock)

        cache.put(("123", "ALL"), make_stats(count=1))
        clock.advance(1700)
        cache.put(("123", "ALL"), make_stats(count=2))
        clock.advance(1700)

        hit = cache.get(("123", "ALL"))
        assert hit is not None
        assert hit.active_count == 2

    def test_expired_entries_stay_until_looked_up(self):
        clock = FakeClock()
        cache = ResultCache(ttl=10, clock=clock)

        cache.put(("a", "ALL"), make_stats("a"))
        cache.put(("b", "ALL"), make_stats("b"))
        clock.advance(60)

        assert cache.size == 2
        cache.get(("a", "ALL"))
        assert cache.size == 1

    def test_invalidate_all(self):
        cache = ResultCache(ttl=1800)
        cache.put(("a", "ALL"), make_stats("a"))
        cache.put(("b", "US"), make_stats("b"))

        assert cache.invalidate_all() == 2
        assert cache.size == 0
        assert cache.get(("a", "ALL")) is None

    def test_default_ttl_from_config(self):
        assert ResultCache().ttl == 1800.0
