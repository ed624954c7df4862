from __future__ import annotations

import asyncio

import pytest

from pagesync.watcher import StatusWatcher, WatcherState


def _transient(record: dict) -> bool:
    return record["status"] == "embedding"


@pytest.mark.asyncio
async def test_watcher_arms_once_and_ticks() -> None:
    ticks = 0

    async def on_tick() -> None:
        nonlocal ticks
        ticks += 1

    changes: list[bool] = []
    watcher = StatusWatcher(is_transient=_transient, interval=0.01, on_tick=on_tick, on_state_change=changes.append)

    assert watcher.evaluate([{"status": "completed"}]) is WatcherState.IDLE
    assert watcher.evaluate([{"status": "embedding"}]) is WatcherState.POLLING
    first_handle = watcher._handle
    watcher.evaluate([{"status": "embedding"}, {"status": "embedding"}])

    assert watcher._handle is first_handle
    assert watcher.transient_count == 2
    assert changes == [True]

    await asyncio.sleep(0.05)
    assert ticks >= 2
    assert watcher.ticks == ticks

    watcher.dispose()
    assert watcher.state is WatcherState.IDLE
    await asyncio.wait({first_handle.task}, timeout=1.0)
    assert first_handle.task.cancelled()
    assert changes == [True, False]


@pytest.mark.asyncio
async def test_watcher_disarms_from_inside_its_own_tick() -> None:
    records = [{"status": "embedding"}]
    watcher: StatusWatcher | None = None
    ticks = 0

    async def on_tick() -> None:
        nonlocal ticks
        ticks += 1
        records[0] = {"status": "completed"}
        assert watcher is not None
        watcher.evaluate(records)

    watcher = StatusWatcher(is_transient=_transient, interval=0.01, on_tick=on_tick)
    watcher.evaluate(records)
    task = watcher._handle.task

    await asyncio.wait_for(task, timeout=1.0)

    assert ticks == 1
    assert watcher.state is WatcherState.IDLE
    assert not task.cancelled()


@pytest.mark.asyncio
async def test_watcher_keeps_polling_when_tick_fails(caplog) -> None:
    calls = 0

    async def on_tick() -> None:
        nonlocal calls
        calls += 1
        raise RuntimeError("backend hiccup")

    watcher = StatusWatcher(is_transient=_transient, interval=0.01, on_tick=on_tick)
    watcher.evaluate([{"status": "embedding"}])

    await asyncio.sleep(0.05)
    watcher.dispose()

    assert calls >= 2
    assert "list.watcher.tick_failed" in caplog.text


def test_watcher_rejects_non_positive_interval() -> None:
    async def on_tick() -> None:
        return None

    with pytest.raises(ValueError):
        StatusWatcher(is_transient=_transient, interval=0, on_tick=on_tick)
