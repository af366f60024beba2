"""
Tests for the blocking monitor module.
"""

from datetime import datetime, timedelta, timezone

import pytest

from adstats.monitor.blocking_monitor import BlockingMonitor, assess_severity
from adstats.monitor.events import Action, BlockingKind, Severity
from adstats.monitor.stores import EventStore, FallbackEventStore, JsonlEventStore


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self):
        self.now = datetime(2024, 6, 1, 12, 30, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def rewind(self, **kwargs) -> None:
        self.now -= timedelta(**kwargs)


class UnwritableStore(EventStore):
    """Store standing in for a log on a failed disk."""

    async def insert(self, event):
        raise OSError("disk full")

    async def query(self, since):
        raise OSError("disk unreadable")

    async def delete_before(self, cutoff):
        raise OSError("disk unreadable")


async def record_many(monitor, clock, kind, count, hours_ago=0.0, **kwargs):
    """Record events spread one minute apart, ending hours_ago before now."""
    saved = clock.now
    clock.now = saved - timedelta(hours=hours_ago)
    for _ in range(count):
        clock.rewind(minutes=1)
        await monitor.record_event(kind, **kwargs)
    clock.now = saved


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def monitor(clock):
    return BlockingMonitor(clock=clock)


class TestAssessSeverity:
    """Tests for the pure severity rules."""

    def test_quiet(self):
        assert assess_severity(0, {}, 0) == (Severity.LOW, Action.CONTINUE)

    def test_volume_tiers(self):
        assert assess_severity(10, {}, 0) == (Severity.LOW, Action.CONTINUE)
        assert assess_severity(11, {}, 0) == (Severity.MEDIUM, Action.REDUCE_FREQUENCY)
        assert assess_severity(21, {}, 0) == (Severity.HIGH, Action.REDUCE_FREQUENCY)
        assert assess_severity(51, {}, 0) == (Severity.CRITICAL, Action.PAUSE)

    def test_ip_blocks_change_strategy(self):
        assert assess_severity(6, {"ip_blocked": 6}, 0) == (Severity.CRITICAL, Action.CHANGE_STRATEGY)
        assert assess_severity(5, {"ip_blocked": 5}, 0) == (Severity.LOW, Action.CONTINUE)

    def test_captcha_burst(self):
        assert assess_severity(11, {"captcha": 11}, 0) == (Severity.HIGH, Action.CHANGE_STRATEGY)

    def test_rate_limit_burst(self):
        assert assess_severity(21, {"rate_limit": 21}, 0) == (Severity.HIGH, Action.REDUCE_FREQUENCY)

    def test_ip_rule_takes_priority_over_captcha(self):
        severity, action = assess_severity(20, {"ip_blocked": 6, "captcha": 14}, 0)
        assert (severity, action) == (Severity.CRITICAL, Action.CHANGE_STRATEGY)

    def test_kind_rule_overrides_volume(self):
        """Test a captcha burst replaces a critical volume verdict."""
        assert assess_severity(60, {"captcha": 11}, 0) == (Severity.HIGH, Action.CHANGE_STRATEGY)

    def test_last_hour_burst_always_pauses(self):
        assert assess_severity(11, {"ip_blocked": 11}, 11) == (Severity.CRITICAL, Action.PAUSE)


class TestBlockingMonitor:
    """Tests for BlockingMonitor class."""

    @pytest.mark.asyncio
    async def test_record_event_defaults(self, monitor, clock):
        event = await monitor.record_event(BlockingKind.CAPTCHA, subject_id="42")

        assert event.severity == Severity.HIGH
        assert event.timestamp == clock.now
        assert event.subject_id == "42"

    @pytest.mark.asyncio
    async def test_record_event_accepts_strings(self, monitor):
        event = await monitor.record_event("rate_limit", "low", retry_after_seconds=10)

        assert event.kind == BlockingKind.RATE_LIMIT
        assert event.severity == Severity.LOW

    @pytest.mark.asyncio
    async def test_empty_window(self, monitor):
        stats = await monitor.compute_stats()

        assert stats.total == 0
        assert stats.last_event is None
        assert stats.average_retry_after == 0.0
        assert stats.current_severity == Severity.LOW
        assert stats.recommended_action == Action.CONTINUE

    @pytest.mark.asyncio
    async def test_six_ip_blocks_is_critical(self, monitor, clock):
        await record_many(monitor, clock, BlockingKind.IP_BLOCKED, 6, hours_ago=3)

        stats = await monitor.compute_stats()

        assert stats.total == 6
        assert stats.by_kind == {"ip_blocked": 6}
        assert stats.current_severity == Severity.CRITICAL
        assert stats.recommended_action == Action.CHANGE_STRATEGY
        assert not await monitor.is_healthy()

    @pytest.mark.asyncio
    async def test_last_hour_burst_pauses(self, monitor, clock):
        """Test eleven recent events pause even though the daily total is modest."""
        await record_many(monitor, clock, BlockingKind.UNKNOWN, 11)

        stats = await monitor.compute_stats()

        assert stats.total == 11
        assert stats.last_hour_total == 11
        assert stats.current_severity == Severity.CRITICAL
        assert stats.recommended_action == Action.PAUSE

    @pytest.mark.asyncio
    async def test_spread_out_events_only_reduce(self, monitor, clock):
        await record_many(monitor, clock, BlockingKind.UNKNOWN, 11, hours_ago=2)

        stats = await monitor.compute_stats()

        assert stats.last_hour_total == 0
        assert stats.current_severity == Severity.MEDIUM
        assert stats.recommended_action == Action.REDUCE_FREQUENCY
        assert await monitor.is_healthy()

    @pytest.mark.asyncio
    async def test_events_outside_window_ignored(self, monitor, clock):
        await record_many(monitor, clock, BlockingKind.IP_BLOCKED, 6, hours_ago=30)

        assert (await monitor.compute_stats()).total == 0
        assert (await monitor.compute_stats(window_hours=48)).total == 6

    @pytest.mark.asyncio
    async def test_average_retry_and_hours(self, monitor, clock):
        await monitor.record_event(BlockingKind.RATE_LIMIT, retry_after_seconds=30)
        await monitor.record_event(BlockingKind.RATE_LIMIT, retry_after_seconds=90)
        await monitor.record_event(BlockingKind.CAPTCHA)

        stats = await monitor.compute_stats()

        assert stats.average_retry_after == 60.0
        assert stats.by_hour == {12: 3}
        assert stats.by_kind == {"rate_limit": 2, "captcha": 1}
        assert stats.last_event == clock.now

    @pytest.mark.asyncio
    async def test_current_severity(self, monitor, clock):
        await record_many(monitor, clock, BlockingKind.CAPTCHA, 11, hours_ago=2)
        assert await monitor.current_severity() == Severity.HIGH

    @pytest.mark.asyncio
    async def test_cleanup_old_events(self, monitor, clock):
        await record_many(monitor, clock, BlockingKind.RATE_LIMIT, 3, hours_ago=24 * 40)
        await record_many(monitor, clock, BlockingKind.RATE_LIMIT, 2)

        removed = await monitor.cleanup_old_events(30)

        assert removed == 3
        assert (await monitor.compute_stats(window_hours=24 * 365)).total == 2

    @pytest.mark.asyncio
    async def test_durable_store(self, clock, tmp_path):
        store = FallbackEventStore(JsonlEventStore(tmp_path / "events.jsonl"))
        await BlockingMonitor(store=store, clock=clock).record_event(BlockingKind.IP_BLOCKED)

        # A fresh monitor over the same file sees the event
        fresh = BlockingMonitor(
            store=FallbackEventStore(JsonlEventStore(tmp_path / "events.jsonl")),
            clock=clock,
        )
        assert (await fresh.compute_stats()).by_kind == {"ip_blocked": 1}

    @pytest.mark.asyncio
    async def test_bare_store_failures_never_raise(self, clock):
        """Test a failing store passed directly is wrapped with a memory fallback."""
        monitor = BlockingMonitor(store=UnwritableStore(), clock=clock)

        assert isinstance(monitor.store, FallbackEventStore)
        await monitor.record_event(BlockingKind.IP_BLOCKED)

        assert (await monitor.compute_stats()).by_kind == {"ip_blocked": 1}
        assert await monitor.cleanup_old_events(30) == 0

    def test_fallback_store_kept_as_given(self, clock):
        store = FallbackEventStore()
        assert BlockingMonitor(store=store, clock=clock).store is store
