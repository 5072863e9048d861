from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from models import ClientEvent, ServerEvent, Story
from services.errors import SessionError
from services.room_hub import Channel, RoomHub
from services.store import SessionStore

router = APIRouter(tags=["realtime"])
logger = logging.getLogger(__name__)


def _dump(value: Any) -> Any:
    if isinstance(value, list):
        return [_dump(item) for item in value]
    if value is None:
        return None
    return value.model_dump(mode="json")


class RoomChannel:
    """
    Protocol handler for one WebSocket channel.

    Inbound frames are ``{"event": ..., "data": {...}}``. ``join-room`` binds the
    channel to a participant; every other event acts as that participant.
    """

    def __init__(self, store: SessionStore, hub: RoomHub, channel: Channel) -> None:
        self.store = store
        self.hub = hub
        self.channel = channel
        self.room_id: str | None = None
        self.participant_id: str | None = None
        self._handlers = {
            ClientEvent.JOIN_ROOM: self.join_room,
            ClientEvent.LEAVE_ROOM: self.leave_room,
            ClientEvent.START_ESTIMATION: self.start_estimation,
            ClientEvent.SUBMIT_VOTE: self.submit_vote,
            ClientEvent.REVEAL_VOTES: self.reveal_votes,
            ClientEvent.RESET_VOTING: self.reset_voting,
            ClientEvent.UPDATE_STORY: self.update_story,
        }

    def error(self, message: str) -> None:
        self.channel.push(ServerEvent.ERROR, {"message": message})

    async def dispatch(self, raw: str) -> None:
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            self.error("Malformed message")
            return
        if not isinstance(message, dict):
            self.error("Malformed message")
            return
        data = message.get("data") or {}
        if not isinstance(data, dict):
            self.error("Malformed message")
            return
        try:
            handler = self._handlers[ClientEvent(message.get("event"))]
        except ValueError:
            self.error(f"Unknown event: {message.get('event')!r}")
            return
        try:
            await handler(data)
        except SessionError as exc:
            logger.info("[rooms_ws] %s rejected on channel %s: %s", message["event"], self.channel.id, exc.message)
            self.error(exc.message)

    def _bound(self) -> tuple[str, str] | None:
        if self.room_id is None or self.participant_id is None:
            self.error("Join a room first")
            return None
        if self.store.participant_for_channel(self.channel.id) != self.participant_id:
            # Left from another tab or over REST, or the room was evicted.
            # room_id stays set so close() still unsubscribes from the hub.
            self.participant_id = None
            self.error("Room or participant not found")
            return None
        return self.room_id, self.participant_id

    async def join_room(self, data: dict[str, Any]) -> None:
        room_id = data.get("room_id")
        participant_id = data.get("participant_id")
        if not isinstance(room_id, str) or not isinstance(participant_id, str) or not room_id or not participant_id:
            self.error("room_id and participant_id are required")
            return
        if self.store.find_room_by_participant(participant_id) != room_id:
            self.error("Invalid room or user")
            return
        if self.room_id is not None and self.room_id != room_id:
            await self.hub.unsubscribe(self.room_id, self.channel)

        orphaned = self.store.bind_channel(participant_id, self.channel.id)
        await self.hub.subscribe(room_id, self.channel)
        self.room_id, self.participant_id = room_id, participant_id
        if orphaned is not None:
            await self._announce_disconnect(orphaned)

        room = self.store.get_room_projection(room_id)
        users = self.store.get_participants_projection(room_id)
        participant = next((u for u in users if u.id == participant_id), None)
        await self.hub.publish(
            room_id,
            ServerEvent.USER_JOINED,
            {"participant": _dump(participant), "room": _dump(room), "users": _dump(users)},
            exclude=self.channel,
        )
        self.channel.push(
            ServerEvent.ROOM_STATE,
            {
                "room": _dump(room),
                "users": _dump(users),
                "results": _dump(self.store.get_voting_results(room_id)),
            },
        )
        logger.info(
            "[rooms_ws] Participant %s joined room %s on channel %s (%d channel(s) in room)",
            participant_id,
            room_id,
            self.channel.id,
            await self.hub.subscriber_count(room_id),
        )

    async def leave_room(self, data: dict[str, Any]) -> None:
        bound = self._bound()
        if bound is None:
            return
        room_id, participant_id = bound
        await self.hub.unsubscribe(room_id, self.channel)
        self.store.unbind_channel(self.channel.id)
        self.room_id = self.participant_id = None
        if not self.store.leave_room(room_id, participant_id):
            self.error("Room or participant not found")
            return
        await self.hub.publish(
            room_id,
            ServerEvent.USER_LEFT,
            {
                "participant_id": participant_id,
                "room": _dump(self.store.get_room_projection(room_id)),
                "users": _dump(self.store.get_participants_projection(room_id)),
            },
        )
        logger.info("[rooms_ws] Participant %s left room %s", participant_id, room_id)

    async def start_estimation(self, data: dict[str, Any]) -> None:
        bound = self._bound()
        if bound is None:
            return
        room_id, participant_id = bound
        self.store.start_estimation(room_id, participant_id)
        await self._publish_round(room_id, ServerEvent.ESTIMATION_STARTED)

    async def submit_vote(self, data: dict[str, Any]) -> None:
        bound = self._bound()
        if bound is None:
            return
        room_id, participant_id = bound
        estimate = data.get("estimate")
        if not isinstance(estimate, str):
            self.error("estimate is required")
            return
        self.store.submit_vote(room_id, participant_id, estimate)
        await self._publish_round(room_id, ServerEvent.VOTE_SUBMITTED, participant_id=participant_id)

    async def reveal_votes(self, data: dict[str, Any]) -> None:
        bound = self._bound()
        if bound is None:
            return
        room_id, participant_id = bound
        self.store.reveal_votes(room_id, participant_id)
        results = self.store.get_voting_results(room_id)
        if results is None:
            self.error("Room not found")
            return
        await self.hub.publish(room_id, ServerEvent.VOTES_REVEALED, _dump(results))

    async def reset_voting(self, data: dict[str, Any]) -> None:
        bound = self._bound()
        if bound is None:
            return
        room_id, participant_id = bound
        self.store.reset_voting(room_id, participant_id)
        await self._publish_round(room_id, ServerEvent.VOTING_RESET)

    async def update_story(self, data: dict[str, Any]) -> None:
        bound = self._bound()
        if bound is None:
            return
        room_id, participant_id = bound
        title = data.get("title", "")
        description = data.get("description", "")
        if not isinstance(title, str) or not isinstance(description, str):
            self.error("title and description must be strings")
            return
        self.store.update_story(room_id, participant_id, Story(title=title, description=description))
        room = self.store.get_room_projection(room_id)
        await self.hub.publish(
            room_id,
            ServerEvent.STORY_UPDATED,
            {"story": {"title": title, "description": description}, "room": _dump(room)},
        )

    async def close(self) -> None:
        """Release the channel; announce a disconnect only when it was the participant's last."""
        if self.room_id is not None:
            await self.hub.unsubscribe(self.room_id, self.channel)
        participant_id = self.store.unbind_channel(self.channel.id)
        if participant_id is None or self.store.has_active_channel(participant_id):
            return
        await self._announce_disconnect(participant_id)

    async def _announce_disconnect(self, participant_id: str) -> None:
        room_id = self.store.find_room_by_participant(participant_id)
        if room_id is None:
            return
        logger.info("[rooms_ws] Participant %s disconnected from room %s", participant_id, room_id)
        await self.hub.publish(
            room_id,
            ServerEvent.USER_DISCONNECTED,
            {
                "participant_id": participant_id,
                "users": _dump(self.store.get_participants_projection(room_id)),
            },
            exclude=self.channel,
        )

    async def _publish_round(self, room_id: str, event: ServerEvent, **extra: Any) -> None:
        payload = dict(extra)
        payload["users"] = _dump(self.store.get_participants_projection(room_id))
        payload["results"] = _dump(self.store.get_voting_results(room_id))
        await self.hub.publish(room_id, event, payload)


async def _pump(websocket: WebSocket, channel: Channel) -> None:
    while True:
        payload = await channel.queue.get()
        await websocket.send_json(payload)


@router.websocket("/ws/rooms")
async def ws_rooms(websocket: WebSocket) -> None:
    """
    Bidirectional room channel.

    Client -> server: join-room, leave-room, start-estimation, submit-vote,
    reveal-votes, reset-voting, update-story.
    Server -> client: room-state, user-joined, user-left, user-disconnected,
    estimation-started, vote-submitted, votes-revealed, voting-reset,
    story-updated, error.
    """
    await websocket.accept()
    channel = Channel(id=uuid.uuid4().hex)
    handler = RoomChannel(websocket.app.state.store, websocket.app.state.hub, channel)
    writer = asyncio.create_task(_pump(websocket, channel))
    logger.info("[rooms_ws] Channel %s connected", channel.id)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                await handler.dispatch(raw)
            except Exception:
                logger.exception("[rooms_ws] Unexpected error handling message on channel %s", channel.id)
                handler.error("Internal server error")
    except WebSocketDisconnect:
        logger.info("[rooms_ws] Channel %s disconnected", channel.id)
    finally:
        await handler.close()
        writer.cancel()
        try:
            await writer
        except asyncio.CancelledError:
            pass
        except Exception as exc:
            logger.debug("[rooms_ws] Writer for channel %s ended: %s", channel.id, exc)
