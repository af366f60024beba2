"""
Blocking Event Stores

Storage backends for blocking events plus the fallback wrapper the monitor
talks to. Every backend exposes insert / query / delete_before.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Optional

import aiofiles

from adstats.config import config
from adstats.monitor.events import BlockingEvent


logger = logging.getLogger(__name__)


class EventStore(ABC):
    """Abstract base class for blocking event stores."""

    @abstractmethod
    async def insert(self, event: BlockingEvent) -> None:
        """Append an event."""
        pass

    @abstractmethod
    async def query(self, since: datetime) -> list[BlockingEvent]:
        """
        Return events recorded at or after a point in time.

        Args:
            since: Inclusive lower bound (timezone-aware)

        Returns:
            Matching events, oldest first
        """
        pass

    @abstractmethod
    async def delete_before(self, cutoff: datetime) -> int:
        """
        Delete events older than a cutoff.

        Returns:
            Number of events deleted
        """
        pass


class InMemoryEventStore(EventStore):
    """
    Bounded ring of the most recent events.

    Once full, each insert drops the oldest event.
    """

    def __init__(self, max_events: int | None = None):
        self._max_events = max_events or config.monitor.max_events_in_memory
        self._events: deque[BlockingEvent] = deque(maxlen=self._max_events)

    async def insert(self, event: BlockingEvent) -> None:
        self._events.append(event)

    async def query(self, since: datetime) -> list[BlockingEvent]:
        return [e for e in self._events if e.timestamp >= since]

    async def delete_before(self, cutoff: datetime) -> int:
        kept = [e for e in self._events if e.timestamp >= cutoff]
        removed = len(self._events) - len(kept)
        self._events = deque(kept, maxlen=self._max_events)
        return removed

    @property
    def max_events(self) -> int:
        return self._max_events

    def __len__(self) -> int:
        return len(self._events)


class JsonlEventStore(EventStore):
    """
    Durable append-only event log, one JSON object per line.

    Example:
        store = JsonlEventStore("storage/blocking_events.jsonl")
        await store.insert(event)
        recent = await store.query(since)
    """

    def __init__(self, path: Path | str | None = None):
        """
        Initialize the store.

        Args:
            path: Log file path (default from config)
        """
        self._path = Path(path) if path else config.monitor.events_path
        self._lock = asyncio.Lock()

        # Parsed log, valid while the file's (mtime, size) matches the stamp
        self._events: Optional[list[BlockingEvent]] = None
        self._stamp: Optional[tuple[int, int]] = None

    @property
    def path(self) -> Path:
        return self._path

    def _file_stamp(self) -> tuple[int, int]:
        stat = self._path.stat()
        return (stat.st_mtime_ns, stat.st_size)

    async def _read_all(self) -> list[BlockingEvent]:
        if not self._path.exists():
            self._events, self._stamp = None, None
            return []

        stamp = self._file_stamp()
        if self._events is not None and stamp == self._stamp:
            return self._events

        async with aiofiles.open(self._path, "r", encoding="utf-8") as f:
            content = await f.read()

        self._events = [
            BlockingEvent.from_dict(json.loads(line))
            for line in content.splitlines()
            if line.strip()
        ]
        self._stamp = stamp
        return self._events

    async def insert(self, event: BlockingEvent) -> None:
        async with self._lock:
            in_sync = (
                self._events is not None
                and self._path.exists()
                and self._file_stamp() == self._stamp
            )

            self._path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(self._path, "a", encoding="utf-8") as f:
                await f.write(json.dumps(event.to_dict()) + "\n")

            if in_sync:
                self._events.append(event)
                self._stamp = self._file_stamp()
            else:
                self._events, self._stamp = None, None

    async def query(self, since: datetime) -> list[BlockingEvent]:
        async with self._lock:
            events = await self._read_all()
        return [e for e in events if e.timestamp >= since]

    async def delete_before(self, cutoff: datetime) -> int:
        async with self._lock:
            events = await self._read_all()
            kept = [e for e in events if e.timestamp >= cutoff]

            if len(kept) == len(events):
                return 0

            async with aiofiles.open(self._path, "w", encoding="utf-8") as f:
                await f.write("".join(json.dumps(e.to_dict()) + "\n" for e in kept))

            self._events, self._stamp = kept, self._file_stamp()
            return len(events) - len(kept)


class FallbackEventStore(EventStore):
    """
    Durable store backed by an in-memory ring.

    Writes always land in memory and are mirrored to the durable store on a
    best-effort basis. Reads come from the durable store while it answers and
    from memory once it fails. Durable-store errors are logged, never raised.
    """

    def __init__(
        self,
        primary: EventStore | None = None,
        memory: InMemoryEventStore | None = None,
    ):
        """
        Initialize the store.

        Args:
            primary: Authoritative durable store (None for memory only)
            memory: Ring used for fallback reads (created if None)
        """
        self._primary = primary
        self._memory = memory or InMemoryEventStore()

    @property
    def memory(self) -> InMemoryEventStore:
        return self._memory

    async def insert(self, event: BlockingEvent) -> None:
        await self._memory.insert(event)

        if self._primary is None:
            return

        try:
            await self._primary.insert(event)
        except Exception as e:
            logger.error(f"Failed to store blocking event: {e}")

    async def query(self, since: datetime) -> list[BlockingEvent]:
        if self._primary is not None:
            try:
                return await self._primary.query(since)
            except Exception as e:
                logger.warning(f"Failed to read blocking events, using in-memory ring: {e}")

        return await self._memory.query(since)

    async def delete_before(self, cutoff: datetime) -> int:
        removed = await self._memory.delete_before(cutoff)

        if self._primary is None:
            return removed

        try:
            return await self._primary.delete_before(cutoff)
        except Exception as e:
            logger.error(f"Failed to clean up blocking events: {e}")
            return removed
