"""
Tests for the batch queue module.
"""

import asyncio

import pytest

from adstats.queue_manager import BatchQueue, BatchRequest


def make_request(subject_id: str) -> BatchRequest:
    return BatchRequest(
        subject_id=subject_id,
        region="ALL",
        future=asyncio.get_running_loop().create_future(),
    )


class TestBatchQueue:
    """Tests for BatchQueue class."""

    @pytest.mark.asyncio
    async def test_add_returns_length(self):
        queue = BatchQueue(flush_interval=0.2)

        assert queue.add(make_request("a")) == 1
        assert queue.add(make_request("b")) == 2
        assert queue.size == 2
        assert not queue.is_empty

    @pytest.mark.asyncio
    async def test_drain_fifo_and_bounded(self):
        queue = BatchQueue(flush_interval=0.2)
        for subject_id in "abcde":
            queue.add(make_request(subject_id))

        batch = queue.drain(3)

        assert [r.subject_id for r in batch] == ["a", "b", "c"]
        assert queue.size == 2
        assert [r.subject_id for r in queue.drain(10)] == ["d", "e"]
        assert queue.drain(10) == []

        stats = queue.get_stats()
        assert stats["total_added"] == 5
        assert stats["total_drained"] == 5
        assert stats["flushes"] == 2

    @pytest.mark.asyncio
    async def test_timer_fires_once(self):
        queue = BatchQueue(flush_interval=0.05)
        fired = []

        assert queue.schedule_flush(lambda: fired.append(1)) is True
        assert queue.schedule_flush(lambda: fired.append(2)) is False
        assert queue.timer_armed

        await asyncio.sleep(0.1)

        assert fired == [1]
        assert not queue.timer_armed

    @pytest.mark.asyncio
    async def test_drain_disarms_timer(self):
        queue = BatchQueue(flush_interval=0.05)
        fired = []
        queue.add(make_request("a"))
        queue.schedule_flush(lambda: fired.append(1))

        queue.drain(10)
        await asyncio.sleep(0.1)

        assert fired == []
        assert not queue.timer_armed

    @pytest.mark.asyncio
    async def test_request_key(self):
        assert make_request("42").key == ("42", "ALL")

    def test_default_interval_from_config(self):
        assert BatchQueue().flush_interval == 0.2
