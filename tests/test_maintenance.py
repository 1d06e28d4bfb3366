"""
Tests for the periodic cache maintenance task.
"""

import asyncio

import pytest

from context_cache.services import CacheMaintenanceTask


class RecordingManager:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls = 0

    async def perform_maintenance(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return {"expired_entries_deleted": 0, "cache_stats": {}}


@pytest.mark.parametrize("interval", [0, -1])
def test_rejects_non_positive_interval(interval):
    with pytest.raises(ValueError):
        CacheMaintenanceTask(RecordingManager(), interval_seconds=interval)


@pytest.mark.asyncio
async def test_run_once():
    manager = RecordingManager()
    task = CacheMaintenanceTask(manager, interval_seconds=60)

    result = await task.run_once()

    assert result["expired_entries_deleted"] == 0
    assert task.runs == 1


@pytest.mark.asyncio
async def test_run_once_logs_failures(caplog):
    task = CacheMaintenanceTask(RecordingManager(ConnectionError("redis down")), interval_seconds=60)

    assert await task.run_once() is None
    assert task.runs == 0
    assert "Cache maintenance run failed" in caplog.text


@pytest.mark.asyncio
async def test_start_is_idempotent_and_stop_cancels():
    task = CacheMaintenanceTask(RecordingManager(), interval_seconds=3600)

    task.start()
    first = task._task
    task.start()

    assert task._task is first
    assert task.is_running

    await task.stop()

    assert not task.is_running
    assert first.cancelled()


@pytest.mark.asyncio
async def test_stop_without_start():
    task = CacheMaintenanceTask(RecordingManager(), interval_seconds=60)
    await task.stop()
    assert not task.is_running


@pytest.mark.asyncio
async def test_loop_runs_periodically_and_survives_failures():
    manager = RecordingManager(RuntimeError("boom"))
    task = CacheMaintenanceTask(manager, interval_seconds=0.01)

    task.start()
    await asyncio.sleep(0.1)
    assert task.is_running
    await task.stop()

    assert manager.calls >= 2
