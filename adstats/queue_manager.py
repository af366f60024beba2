"""
Batch Queue Module

Holds stat requests that arrived while every concurrency slot was busy,
until the orchestrator flushes them as a batch.
"""

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Optional

from adstats.config import config


@dataclass
class BatchRequest:
    """A pending stat request and the future its caller awaits."""

    subject_id: str
    region: str
    future: asyncio.Future
    enqueued_at: float = field(default_factory=time.monotonic)

    @property
    def key(self) -> tuple[str, str]:
        return (self.subject_id, self.region)


class BatchQueue:
    """
    FIFO queue of pending requests with a flush window timer.

    The timer is armed by the first enqueue of a window and disarmed when a
    batch is drained, so a partial batch never waits longer than the flush
    interval.

    Example:
        queue = BatchQueue()
        if queue.add(request) >= batch_size:
            batch = queue.drain(batch_size)
        else:
            queue.schedule_flush(on_flush)
    """

    def __init__(self, flush_interval: float | None = None):
        """
        Initialize the queue.

        Args:
            flush_interval: Seconds from first enqueue to forced flush (default from config)
        """
        self._flush_interval = flush_interval or config.batch.flush_interval
        self._queue: deque[BatchRequest] = deque()
        self._timer: Optional[asyncio.TimerHandle] = None

        # Stats
        self._added = 0
        self._drained = 0
        self._flushes = 0

    @property
    def flush_interval(self) -> float:
        return self._flush_interval

    def add(self, request: BatchRequest) -> int:
        """
        Append a request.

        Returns:
            Queue length after the append
        """
        self._queue.append(request)
        self._added += 1
        return len(self._queue)

    def drain(self, max_items: int) -> list[BatchRequest]:
        """
        Remove up to max_items requests in arrival order and close the window.

        Args:
            max_items: Batch size

        Returns:
            Drained requests (possibly empty)
        """
        self.cancel_timer()

        batch = []
        while self._queue and len(batch) < max_items:
            batch.append(self._queue.popleft())

        if batch:
            self._drained += len(batch)
            self._flushes += 1
        return batch

    def schedule_flush(self, callback: Callable[[], None]) -> bool:
        """
        Arm the window timer unless it is already running.

        Args:
            callback: Called on the event loop when the window elapses

        Returns:
            True if a new timer was armed
        """
        if self._timer is not None:
            return False

        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._flush_interval, self._on_timer, callback)
        return True

    def _on_timer(self, callback: Callable[[], None]) -> None:
        self._timer = None
        callback()

    def cancel_timer(self) -> None:
        """Disarm the window timer."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    @property
    def timer_armed(self) -> bool:
        return self._timer is not None

    @property
    def size(self) -> int:
        """Current queue size."""
        return len(self._queue)

    @property
    def is_empty(self) -> bool:
        """Check if queue is empty."""
        return len(self._queue) == 0

    def get_stats(self) -> dict:
        """Get queue statistics."""
        return {
            "current_size": len(self._queue),
            "total_added": self._added,
            "total_drained": self._drained,
            "flushes": self._flushes,
            "timer_armed": self.timer_armed,
        }
