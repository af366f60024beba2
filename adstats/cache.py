"""
Result Cache Module

In-memory TTL cache of extracted stats keyed by (subject_id, region).
Expired entries are evicted lazily on lookup; nothing sweeps the store.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from adstats.config import config
from adstats.extraction.extractor import ExtractedStats


logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str]


@dataclass
class CacheEntry:
    """A cached result and the time it was stored."""

    key: CacheKey
    value: ExtractedStats
    stored_at: float

    def is_fresh(self, now: float, ttl: float) -> bool:
        return now - self.stored_at < ttl


class ResultCache:
    """
    TTL cache for extracted advertiser stats.

    Example:
        cache = ResultCache()
        cache.put(("123", "US"), stats)
        hit = cache.get(("123", "US"))
    """

    def __init__(
        self,
        ttl: float | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the cache.

        Args:
            ttl: Entry lifetime in seconds (default from config)
            clock: Time source returning seconds
        """
        self._ttl = ttl or config.cache.ttl_seconds
        self._clock = clock
        self._entries: Dict[CacheKey, CacheEntry] = {}

        # Stats
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def ttl(self) -> float:
        return self._ttl

    def get(self, key: CacheKey) -> Optional[ExtractedStats]:
        """
        Look up a cached result.

        Args:
            key: (subject_id, region)

        Returns:
            The cached stats, or None if absent or expired
        """
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None

        if not entry.is_fresh(self._clock(), self._ttl):
            del self._entries[key]
            self._evictions += 1
            self._misses += 1
            logger.debug(f"Evicted expired cache entry {key}")
            return None

        self._hits += 1
        return entry.value

    def put(self, key: CacheKey, value: ExtractedStats) -> None:
        """Store a result, overwriting any previous entry."""
        self._entries[key] = CacheEntry(key=key, value=value, stored_at=self._clock())

    def invalidate_all(self) -> int:
        """
        Drop every entry.

        Returns:
            Number of entries removed
        """
        count = len(self._entries)
        self._entries.clear()
        logger.info(f"Result cache cleared ({count} entries)")
        return count

    @property
    def size(self) -> int:
        """Number of stored entries, including not-yet-evicted expired ones."""
        return len(self._entries)

    def get_stats(self) -> dict:
        """Get cache statistics."""
        return {
            "size": len(self._entries),
            "ttl_seconds": self._ttl,
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
        }
