"""Periodic eviction of idle rooms."""

from __future__ import annotations

import asyncio
import logging

from services.store import SessionStore

logger = logging.getLogger(__name__)


async def run_idle_sweeper(store: SessionStore, interval_seconds: float) -> None:
    """
    Evict idle rooms every ``interval_seconds`` until cancelled.

    Runs on the event loop; the store takes each room's lock before deleting
    it, so a sweep never interleaves with an operation on the same room.
    """
    logger.info(
        "[housekeeping] Idle sweeper started: interval=%.0fs timeout=%s",
        interval_seconds,
        store.idle_timeout,
    )
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            evicted = store.evict_idle_rooms()
        except Exception:
            logger.exception("[housekeeping] Idle sweep failed; retrying next interval")
            continue
        if evicted:
            logger.info("[housekeeping] Evicted %d idle room(s): %s", len(evicted), ", ".join(evicted))
