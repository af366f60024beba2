"""Monitor module - blocking event recording, storage and severity analysis."""

from .events import Action, BlockingEvent, BlockingKind, BlockingStats, Severity
from .stores import EventStore, FallbackEventStore, InMemoryEventStore, JsonlEventStore
from .blocking_monitor import BlockingMonitor, assess_severity

__all__ = [
    "Action",
    "BlockingEvent",
    "BlockingKind",
    "BlockingStats",
    "Severity",
    "EventStore",
    "FallbackEventStore",
    "InMemoryEventStore",
    "JsonlEventStore",
    "BlockingMonitor",
    "assess_severity",
]
