"""Tests for the keyed background task scheduler."""

import asyncio

import pytest

from voicewarden.scheduler.task_scheduler import TaskScheduler


def test_scheduling_needs_a_running_loop():
    scheduler = TaskScheduler()
    with pytest.raises(RuntimeError):
        scheduler.schedule_once("owner", "key", 0, lambda: None)
    assert scheduler.scheduled_keys() == []


@pytest.mark.asyncio
async def test_once_runs_sync_and_async_callbacks():
    scheduler = TaskScheduler()
    calls = []

    async def async_callback():
        calls.append("async")

    scheduler.schedule_once("owner", "a", 0, lambda: calls.append("sync"))
    scheduler.schedule_once("owner", "b", 0, async_callback)
    await asyncio.sleep(0.05)
    assert sorted(calls) == ["async", "sync"]
    assert scheduler.scheduled_keys() == []


@pytest.mark.asyncio
async def test_same_key_replaces_previous_task():
    scheduler = TaskScheduler()
    calls = []
    scheduler.schedule_once("owner", "key", 0.01, lambda: calls.append("first"))
    scheduler.schedule_once("owner", "key", 0.01, lambda: calls.append("second"))
    await asyncio.sleep(0.05)
    assert calls == ["second"]


@pytest.mark.asyncio
async def test_cancel_by_key_and_owner():
    scheduler = TaskScheduler()
    scheduler.schedule_once("rotation", "chan-1", 10, lambda: None)
    scheduler.schedule_once("cleanup", "chan-1", 10, lambda: None)
    scheduler.schedule_once("cleanup", "chan-2", 10, lambda: None)

    assert scheduler.cancel_key("chan-1") == 2
    assert scheduler.scheduled_keys() == [("cleanup", "chan-2")]
    assert not scheduler.cancel("cleanup", "chan-1")
    assert scheduler.cancel_owner("cleanup") == 1
    assert not scheduler.is_scheduled("cleanup", "chan-2")


@pytest.mark.asyncio
async def test_repeating_reads_interval_each_tick():
    scheduler = TaskScheduler()
    ticks = []
    scheduler.schedule_repeating("owner", "tick", lambda: 0.005, lambda: ticks.append(1))
    await asyncio.sleep(0.05)
    assert len(ticks) >= 2
    assert scheduler.is_scheduled("owner", "tick")
    await scheduler.shutdown()
    assert not scheduler.is_scheduled("owner", "tick")


@pytest.mark.asyncio
async def test_failing_callback_does_not_stop_repeating():
    scheduler = TaskScheduler()
    ticks = []

    def flaky():
        ticks.append(1)
        raise ValueError("boom")

    scheduler.schedule_repeating("owner", "flaky", 0.005, flaky)
    await asyncio.sleep(0.05)
    assert len(ticks) >= 2
    await scheduler.shutdown()


@pytest.mark.asyncio
async def test_shutdown_cancels_pending_tasks():
    scheduler = TaskScheduler()
    calls = []
    task = scheduler.schedule_once("owner", "later", 10, lambda: calls.append(1))
    await scheduler.shutdown()
    assert task.cancelled()
    assert calls == []
    assert scheduler.scheduled_keys() == []
