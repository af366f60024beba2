"""
Blocking Monitor Module

Records classified blocking signals and turns the recent history into a
severity level and a recommended action for the throttle controller.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict

from adstats.config import config
from adstats.monitor.events import (
    DEFAULT_SEVERITY,
    Action,
    BlockingEvent,
    BlockingKind,
    BlockingStats,
    Severity,
)
from adstats.monitor.stores import EventStore, FallbackEventStore


logger = logging.getLogger(__name__)


# Volume thresholds over the analysis window
MEDIUM_VOLUME = 10
HIGH_VOLUME = 20
CRITICAL_VOLUME = 50

# Per-kind thresholds over the analysis window
IP_BLOCKED_LIMIT = 5
CAPTCHA_LIMIT = 10
RATE_LIMIT_LIMIT = 20

# Events inside the trailing hour that force a pause
LAST_HOUR_LIMIT = 10


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def assess_severity(
    total: int,
    by_kind: Dict[str, int],
    last_hour_total: int,
) -> tuple[Severity, Action]:
    """
    Derive severity and recommended action from window counts.

    Volume sets a baseline, a burst of one blocking kind overrides it, and
    more than LAST_HOUR_LIMIT events in the trailing hour always pauses.

    Args:
        total: Events in the analysis window
        by_kind: Event counts keyed by BlockingKind value
        last_hour_total: Events in the trailing hour

    Returns:
        (severity, action)
    """
    severity, action = Severity.LOW, Action.CONTINUE

    if total > CRITICAL_VOLUME:
        severity, action = Severity.CRITICAL, Action.PAUSE
    elif total > HIGH_VOLUME:
        severity, action = Severity.HIGH, Action.REDUCE_FREQUENCY
    elif total > MEDIUM_VOLUME:
        severity, action = Severity.MEDIUM, Action.REDUCE_FREQUENCY

    if by_kind.get(BlockingKind.IP_BLOCKED.value, 0) > IP_BLOCKED_LIMIT:
        severity, action = Severity.CRITICAL, Action.CHANGE_STRATEGY
    elif by_kind.get(BlockingKind.CAPTCHA.value, 0) > CAPTCHA_LIMIT:
        severity, action = Severity.HIGH, Action.CHANGE_STRATEGY
    elif by_kind.get(BlockingKind.RATE_LIMIT.value, 0) > RATE_LIMIT_LIMIT:
        severity, action = Severity.HIGH, Action.REDUCE_FREQUENCY

    if last_hour_total > LAST_HOUR_LIMIT:
        severity, action = Severity.CRITICAL, Action.PAUSE

    return severity, action


class BlockingMonitor:
    """
    Blocking event recorder and analyzer.

    Features:
    - Best-effort durable recording with in-memory fallback
    - Rolling-window aggregation by kind and hour of day
    - Severity/action rules with last-hour escalation
    - Retention purge

    Example:
        monitor = BlockingMonitor(store=FallbackEventStore(JsonlEventStore()))
        await monitor.record_event(BlockingKind.RATE_LIMIT, retry_after_seconds=60)
        stats = await monitor.compute_stats()
        print(stats.current_severity, stats.recommended_action)
    """

    def __init__(
        self,
        store: EventStore | None = None,
        window_hours: float | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the monitor.

        Args:
            store: Event store (memory-only FallbackEventStore if None);
                any other store is wrapped so its errors are never raised
            window_hours: Default analysis window (default from config)
            clock: Time source returning timezone-aware datetimes
        """
        if not isinstance(store, FallbackEventStore):
            store = FallbackEventStore(primary=store)
        self._store = store
        self._window_hours = window_hours or config.monitor.analysis_window_hours
        self._clock = clock

    @property
    def store(self) -> EventStore:
        return self._store

    async def record_event(
        self,
        kind: BlockingKind | str,
        severity: Severity | str | None = None,
        *,
        retry_after_seconds: float | None = None,
        user_agent: str | None = None,
        source_ip: str | None = None,
        subject_id: str | None = None,
        message: str | None = None,
    ) -> BlockingEvent:
        """
        Record a blocking event.

        Args:
            kind: Classified blocking kind
            severity: Severity hint (derived from kind if None)
            retry_after_seconds: Server-supplied retry hint
            user_agent: User-Agent used by the blocked request
            source_ip: Egress IP of the blocked request
            subject_id: Page ID being fetched
            message: Free-form description

        Returns:
            The recorded event
        """
        kind = BlockingKind(kind)
        severity = Severity(severity) if severity is not None else DEFAULT_SEVERITY[kind]

        event = BlockingEvent(
            kind=kind,
            severity=severity,
            timestamp=self._clock(),
            retry_after_seconds=retry_after_seconds,
            user_agent=user_agent,
            source_ip=source_ip,
            subject_id=subject_id,
            message=message,
        )

        await self._store.insert(event)
        logger.warning(f"Blocking event recorded: {kind.value} ({severity.value})")
        return event

    async def compute_stats(self, window_hours: float | None = None) -> BlockingStats:
        """
        Aggregate the events inside the analysis window.

        Args:
            window_hours: Lookback in hours (default from constructor)

        Returns:
            BlockingStats with severity and recommended action
        """
        now = self._clock()
        window_start = now - timedelta(hours=window_hours or self._window_hours)
        hour_ago = now - timedelta(hours=1)

        events = await self._store.query(window_start)

        stats = BlockingStats()
        retry_total = 0.0
        retry_count = 0

        for event in events:
            stats.total += 1
            stats.by_kind[event.kind.value] = stats.by_kind.get(event.kind.value, 0) + 1

            hour = event.timestamp.astimezone(timezone.utc).hour
            stats.by_hour[hour] = stats.by_hour.get(hour, 0) + 1

            if event.retry_after_seconds:
                retry_total += event.retry_after_seconds
                retry_count += 1

            if stats.last_event is None or event.timestamp > stats.last_event:
                stats.last_event = event.timestamp

            if event.timestamp > hour_ago:
                stats.last_hour_total += 1

        if retry_count:
            stats.average_retry_after = retry_total / retry_count

        stats.current_severity, stats.recommended_action = assess_severity(
            stats.total,
            stats.by_kind,
            stats.last_hour_total,
        )
        return stats

    async def current_severity(self) -> Severity:
        """Severity over the default window."""
        stats = await self.compute_stats()
        return stats.current_severity

    async def cleanup_old_events(self, days_to_keep: int | None = None) -> int:
        """
        Purge events older than the retention horizon.

        Args:
            days_to_keep: Retention in days (default from config)

        Returns:
            Number of events deleted
        """
        days = days_to_keep if days_to_keep is not None else config.monitor.retention_days
        cutoff = self._clock() - timedelta(days=days)
        removed = await self._store.delete_before(cutoff)
        logger.info(f"Cleaned up {removed} blocking events older than {days} days")
        return removed

    async def is_healthy(self) -> bool:
        """True unless blocking pressure is critical."""
        return await self.current_severity() != Severity.CRITICAL

