from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

CHANNEL_QUEUE_SIZE = 64


@dataclass(eq=False)
class Channel:
    """One live transport connection and its outbound message queue."""

    id: str
    queue: asyncio.Queue[dict[str, Any]] = field(
        default_factory=lambda: asyncio.Queue(maxsize=CHANNEL_QUEUE_SIZE)
    )

    def push(self, event: str, data: dict[str, Any]) -> None:
        message = {"event": str(event), "data": data}
        # latest-wins: a slow reader loses its oldest pending message
        if self.queue.full():
            try:
                _ = self.queue.get_nowait()
            except asyncio.QueueEmpty:
                pass
            logger.warning("[room_hub] Channel %s is backed up; dropped oldest message", self.id)
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("[room_hub] Channel %s queue full; dropped %s", self.id, event)


class RoomHub:
    """
    In-memory pubsub keyed by room code.

    Channels subscribe to the room they joined; ``publish`` fans a message out
    to every subscribed channel, optionally skipping the sender. When built
    with ``is_member``, subscribers that no longer belong to the room are
    dropped at publish time instead of receiving the message.
    """

    def __init__(self, is_member: Callable[[str, Channel], bool] | None = None) -> None:
        self._lock = asyncio.Lock()
        self._subscribers: dict[str, set[Channel]] = defaultdict(set)
        self._is_member = is_member

    async def subscribe(self, room_code: str, channel: Channel) -> None:
        async with self._lock:
            self._subscribers[room_code].add(channel)

    async def unsubscribe(self, room_code: str, channel: Channel) -> None:
        async with self._lock:
            self._discard(room_code, channel)

    async def subscriber_count(self, room_code: str) -> int:
        async with self._lock:
            return len(self._subscribers.get(room_code, ()))

    async def publish(
        self,
        room_code: str,
        event: str,
        data: dict[str, Any],
        *,
        exclude: Channel | None = None,
    ) -> None:
        async with self._lock:
            subs = list(self._subscribers.get(room_code, set()))
            if self._is_member is not None:
                stale = [channel for channel in subs if not self._is_member(room_code, channel)]
                for channel in stale:
                    self._discard(room_code, channel)
                    logger.info("[room_hub] Channel %s no longer in room %s; unsubscribed", channel.id, room_code)
                subs = [channel for channel in subs if channel not in stale]
        for channel in subs:
            if channel is not exclude:
                channel.push(event, data)

    def _discard(self, room_code: str, channel: Channel) -> None:
        # Caller holds self._lock.
        subs = self._subscribers.get(room_code)
        if not subs:
            return
        subs.discard(channel)
        if not subs:
            self._subscribers.pop(room_code, None)
