from __future__ import annotations

import pytest

from services.room_hub import CHANNEL_QUEUE_SIZE, Channel, RoomHub


@pytest.mark.anyio
async def test_publish_reaches_subscribers_except_excluded() -> None:
    hub = RoomHub()
    sender, other = Channel(id="sender"), Channel(id="other")
    await hub.subscribe("ABC234", sender)
    await hub.subscribe("ABC234", other)

    await hub.publish("ABC234", "vote-submitted", {"n": 1}, exclude=sender)

    assert sender.queue.empty()
    assert other.queue.get_nowait() == {"event": "vote-submitted", "data": {"n": 1}}


@pytest.mark.anyio
async def test_publish_is_scoped_to_room() -> None:
    hub = RoomHub()
    inside, outside = Channel(id="inside"), Channel(id="outside")
    await hub.subscribe("ROOM22", inside)
    await hub.subscribe("ROOM33", outside)

    await hub.publish("ROOM22", "story-updated", {})

    assert inside.queue.qsize() == 1
    assert outside.queue.empty()


@pytest.mark.anyio
async def test_unsubscribe_removes_empty_rooms() -> None:
    hub = RoomHub()
    channel = Channel(id="c1")
    await hub.subscribe("ROOM22", channel)
    assert await hub.subscriber_count("ROOM22") == 1

    await hub.unsubscribe("ROOM22", channel)
    await hub.unsubscribe("ROOM22", channel)

    assert await hub.subscriber_count("ROOM22") == 0
    await hub.publish("ROOM22", "voting-reset", {})
    assert channel.queue.empty()


def test_full_channel_drops_oldest_message() -> None:
    channel = Channel(id="slow")
    for i in range(CHANNEL_QUEUE_SIZE + 1):
        channel.push("vote-submitted", {"n": i})

    assert channel.queue.qsize() == CHANNEL_QUEUE_SIZE
    assert channel.queue.get_nowait()["data"] == {"n": 1}


@pytest.mark.anyio
async def test_publish_drops_channels_that_left_the_room() -> None:
    members = {"stays"}
    hub = RoomHub(is_member=lambda room_code, channel: channel.id in members)
    stays, left = Channel(id="stays"), Channel(id="left")
    await hub.subscribe("ROOM22", stays)
    await hub.subscribe("ROOM22", left)

    await hub.publish("ROOM22", "votes-revealed", {"revealed": True})

    assert stays.queue.qsize() == 1
    assert left.queue.empty()
    assert await hub.subscriber_count("ROOM22") == 1
