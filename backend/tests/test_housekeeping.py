from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from services.housekeeping import run_idle_sweeper
from services.store import SessionStore


@pytest.mark.anyio
async def test_sweeper_evicts_idle_rooms_until_cancelled() -> None:
    store = SessionStore(idle_timeout=timedelta(seconds=0))
    store.create_room("Sprint 1", "Alice")

    task = asyncio.create_task(run_idle_sweeper(store, interval_seconds=0.01))
    for _ in range(100):
        if not store.list_rooms():
            break
        await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert store.list_rooms() == []


@pytest.mark.anyio
async def test_sweeper_keeps_active_rooms() -> None:
    store = SessionStore(idle_timeout=timedelta(hours=1))
    room_id, _ = store.create_room("Sprint 1", "Alice")

    task = asyncio.create_task(run_idle_sweeper(store, interval_seconds=0.01))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert store.get_room_projection(room_id) is not None
