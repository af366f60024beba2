"""
Main Orchestrator Module

Admission and batch coordinator for advertiser stat lookups.
Connects the cache, the extraction cascade, the blocking monitor and the
throttle controller into one feedback loop.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from functools import partial
from typing import Awaitable, Callable, Dict, Optional

from adstats.cache import CacheKey, ResultCache
from adstats.config import config, AdstatsConfig
from adstats.extraction.extractor import ExtractedStats, ExtractionError, extract_stats
from adstats.extraction.scripts import ScriptInspector
from adstats.fetchers.http_fetcher import FetchError, HTTPFetcher, build_ad_library_url
from adstats.monitor.blocking_monitor import BlockingMonitor
from adstats.monitor.events import BlockingStats
from adstats.queue_manager import BatchQueue, BatchRequest
from adstats.safety.detector import BlockingSignal, classify_failure
from adstats.safety.slots import AdaptiveSlots
from adstats.safety.throttle import ThrottleController
from adstats.stealth.user_agents import UserAgentRotator


logger = logging.getLogger(__name__)

FetchPage = Callable[[str, dict, float], Awaitable[str]]
Classifier = Callable[[Exception], Optional[BlockingSignal]]


@dataclass
class StatsResult:
    """Outcome of a single stat lookup."""

    success: bool
    stats: Optional[ExtractedStats] = None
    error: Optional[str] = None
    execution_time_ms: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "stats": self.stats.to_dict() if self.stats else None,
            "error": self.error,
            "execution_time_ms": round(self.execution_time_ms, 1),
        }


@dataclass
class PerformanceStats:
    """Running counters for the operator snapshot."""

    total_requests: int = 0
    cache_hits: int = 0
    successful_scrapes: int = 0
    errors: int = 0
    deduplicated_requests: int = 0

    @property
    def cache_hit_rate(self) -> float:
        """Cache hit rate percentage."""
        if self.total_requests == 0:
            return 0.0
        return (self.cache_hits / self.total_requests) * 100

    @property
    def success_rate(self) -> float:
        """Success rate percentage."""
        if self.total_requests == 0:
            return 0.0
        return (self.successful_scrapes / self.total_requests) * 100


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class Orchestrator:
    """
    Admission and batch coordinator.

    Implements the lookup workflow:
    1. Serve fresh results from the cache
    2. Join a lookup already in flight for the same key
    3. Scrape directly while a concurrency slot is free
    4. Otherwise queue, and flush in batches sized by the throttle

    Every failure the classifier recognises is reported to the blocking
    monitor, whose severity drives the next admission decision.

    Example:
        orchestrator = Orchestrator(fetch_page=HTTPFetcher().fetch_page)
        result = await orchestrator.get_advertiser_stats("123456", "US")
    """

    def __init__(
        self,
        fetch_page: FetchPage | None = None,
        monitor: BlockingMonitor | None = None,
        cache: ResultCache | None = None,
        classifier: Classifier = classify_failure,
        user_agent_rotator: UserAgentRotator | None = None,
        flush_interval: float | None = None,
        fetch_timeout: float | None = None,
        config: AdstatsConfig | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            fetch_page: Async (url, headers, timeout) -> body, raising FetchError
            monitor: Blocking monitor (memory-only if None)
            cache: Result cache (created from config if None)
            classifier: Maps a scrape failure to a blocking signal or None
            user_agent_rotator: Source of browser-like headers
            flush_interval: Batch window in seconds (default from config)
            fetch_timeout: Hard limit per page fetch in seconds (default from config)
            config: Custom configuration (uses global if None)
        """
        self._config = config or globals()["config"]
        self._fetch_timeout = fetch_timeout or self._config.fetch.timeout
        self._fetch_page = fetch_page or HTTPFetcher().fetch_page
        self._monitor = monitor or BlockingMonitor()
        self._throttle = ThrottleController(self._monitor)
        self._cache = cache or ResultCache(ttl=self._config.cache.ttl_seconds)
        self._classifier = classifier
        self._ua_rotator = user_agent_rotator or UserAgentRotator()
        self._inspector = ScriptInspector()

        self._queue = BatchQueue(flush_interval or self._config.batch.flush_interval)
        self._slots = AdaptiveSlots(self._throttle.recommended_concurrency)
        self._inflight: Dict[CacheKey, asyncio.Task] = {}
        self._batch_tasks: set[asyncio.Task] = set()

        self._stats = PerformanceStats()

    @property
    def monitor(self) -> BlockingMonitor:
        return self._monitor

    @property
    def throttle(self) -> ThrottleController:
        return self._throttle

    async def get_advertiser_stats(self, subject_id: str, region: str = "ALL") -> StatsResult:
        """
        Look up the active ad count of an advertiser page.

        Args:
            subject_id: Advertiser page ID
            region: Country code, or "ALL"

        Returns:
            StatsResult; failures are reported through success=False, never raised
        """
        self._stats.total_requests += 1
        start = time.perf_counter()
        key = (subject_id, region)

        cached = self._cache.get(key)
        if cached is not None:
            self._stats.cache_hits += 1
            logger.debug(f"Cache hit for {subject_id}/{region}: {cached.active_count} ads")
            return StatsResult(success=True, stats=cached, execution_time_ms=_elapsed_ms(start))

        task = self._inflight.get(key)
        if task is not None:
            self._stats.deduplicated_requests += 1
            logger.debug(f"Joining in-flight lookup for {subject_id}/{region}")
        else:
            task = asyncio.create_task(self._admit(subject_id, region))
            self._inflight[key] = task
            task.add_done_callback(partial(self._forget, key))

        result = await asyncio.shield(task)
        return replace(result, execution_time_ms=_elapsed_ms(start))

    def _forget(self, key: CacheKey, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _admit(self, subject_id: str, region: str) -> StatsResult:
        """Run directly if a slot is free, otherwise queue for the next batch."""
        try:
            concurrency = await self._throttle.recommended_concurrency()
            if not self._slots.try_claim(concurrency):
                return await self._enqueue(subject_id, region)
        except Exception as e:
            logger.error(f"Admission failed for {subject_id}: {e}")
            return self._failure(e)

        try:
            return await self._scrape(subject_id, region)
        except Exception as e:
            logger.error(f"Lookup failed for {subject_id}: {e}")
            return self._failure(e)
        finally:
            await self._slots.release()

    def _failure(self, error: Exception) -> StatsResult:
        self._stats.errors += 1
        return StatsResult(success=False, error=str(error) or error.__class__.__name__)

    async def _enqueue(self, subject_id: str, region: str) -> StatsResult:
        batch_size = await self._throttle.recommended_batch_size()
        request = BatchRequest(
            subject_id=subject_id,
            region=region,
            future=asyncio.get_running_loop().create_future(),
        )

        if self._queue.add(request) >= batch_size:
            self._flush()
        else:
            self._queue.schedule_flush(self._flush)

        return await request.future

    def _flush(self) -> None:
        """Start draining the queue in the background."""
        self._queue.cancel_timer()
        task = asyncio.create_task(self._process_batch())
        self._batch_tasks.add(task)
        task.add_done_callback(self._batch_tasks.discard)

    async def _process_batch(self) -> None:
        try:
            batch_size = await self._throttle.recommended_batch_size()
        except Exception as e:
            batch = self._queue.drain(self._queue.size)
            logger.error(f"Could not size batch, failing {len(batch)} queued requests: {e}")
            for request in batch:
                if not request.future.done():
                    request.future.set_result(self._failure(e))
            return

        batch = self._queue.drain(batch_size)
        if not batch:
            return

        if not self._queue.is_empty:
            self._queue.schedule_flush(self._flush)

        logger.info(f"Processing batch of {len(batch)} requests")
        await asyncio.gather(
            *(self._run_queued(request) for request in batch),
            return_exceptions=True,
        )

    async def _run_queued(self, request: BatchRequest) -> None:
        """Wait for a slot, scrape, and resolve the request's future."""
        try:
            async with self._slots:
                result = await self._scrape(request.subject_id, request.region)
        except asyncio.CancelledError:
            request.future.cancel()
            raise
        except Exception as e:
            logger.error(f"Queued lookup failed for {request.subject_id}: {e}")
            result = self._failure(e)

        if not request.future.done():
            request.future.set_result(result)

    async def _scrape(self, subject_id: str, region: str) -> StatsResult:
        """Fetch and extract one page, writing through to the cache on success."""
        start = time.perf_counter()
        url = build_ad_library_url(subject_id, region, self._config.fetch.base_url)
        headers = self._ua_rotator.get_headers()

        try:
            html = await self._fetch_page(url, headers, self._fetch_timeout)
            stats = extract_stats(html, subject_id)
            if stats is None:
                raise ExtractionError(f"No active ad count found for page {subject_id}", html=html)
        except Exception as e:
            await self._handle_failure(subject_id, e, headers)
            return StatsResult(success=False, error=str(e) or e.__class__.__name__, execution_time_ms=_elapsed_ms(start))

        self._cache.put((subject_id, region), stats)
        self._stats.successful_scrapes += 1
        logger.info(f"Scraped {subject_id}/{region}: {stats.active_count} ads in {_elapsed_ms(start):.0f}ms")

        return StatsResult(success=True, stats=stats, execution_time_ms=_elapsed_ms(start))

    async def _handle_failure(self, subject_id: str, error: Exception, headers: dict) -> None:
        self._stats.errors += 1

        if isinstance(error, ExtractionError):
            if logger.isEnabledFor(logging.WARNING):
                # Full HTML parse, kept off the event loop
                scripts = await asyncio.to_thread(self._inspector.summarize, error.html)
                logger.warning(f"Extraction failed for {subject_id}; scripts found: {scripts}")
        elif isinstance(error, FetchError):
            logger.error(f"Fetch failed for {subject_id}: {error}")
        else:
            logger.exception(f"Unexpected error scraping {subject_id}")

        signal = self._classifier(error)
        if signal is None:
            return

        await self._monitor.record_event(
            signal.kind,
            retry_after_seconds=signal.retry_after,
            user_agent=headers.get("User-Agent"),
            subject_id=subject_id,
            message=signal.message,
        )

    async def get_blocking_stats(self, window_hours: float | None = None) -> BlockingStats:
        """Current blocking aggregate and recommendation."""
        return await self._monitor.compute_stats(window_hours)

    async def get_recommended_delay(self) -> float:
        """Delay in seconds callers should wait before retrying."""
        return await self._throttle.recommended_delay()

    async def get_recommended_batch_size(self) -> int:
        return await self._throttle.recommended_batch_size()

    async def get_recommended_concurrency(self) -> int:
        return await self._throttle.recommended_concurrency()

    def get_performance_stats(self) -> dict:
        """Get the operator-facing performance snapshot."""
        return {
            "total_requests": self._stats.total_requests,
            "cache_hits": self._stats.cache_hits,
            "successful_scrapes": self._stats.successful_scrapes,
            "errors": self._stats.errors,
            "deduplicated_requests": self._stats.deduplicated_requests,
            "cache_hit_rate": round(self._stats.cache_hit_rate, 1),
            "cache_size": self._cache.size,
            "active_requests": self._slots.active,
            "queued_requests": self._queue.size + self._slots.waiting,
            "success_rate": round(self._stats.success_rate, 1),
            "batches_flushed": self._queue.get_stats()["flushes"],
        }

    def clear_cache(self) -> int:
        """Drop all cached results (operator reset)."""
        return self._cache.invalidate_all()

    async def cleanup_old_events(self, days_to_keep: int | None = None) -> int:
        """Purge stored blocking events past retention."""
        return await self._monitor.cleanup_old_events(days_to_keep)

    async def is_healthy(self) -> bool:
        return await self._monitor.is_healthy()

    async def aclose(self) -> None:
        """Wait for batches already flushed to finish."""
        while self._batch_tasks or not self._queue.is_empty:
            if not self._queue.is_empty and not self._batch_tasks:
                self._flush()
            await asyncio.gather(*list(self._batch_tasks), return_exceptions=True)
