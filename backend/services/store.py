"""In-memory session store: rooms, participants, votes and channel bindings.

Locking
-------
- ``_lock`` guards the room table and the participant -> room index.
- every ``Room`` carries its own lock; all reads and writes of a room happen
  while holding it, so operations on one room are linearized while different
  rooms proceed in parallel.
- ``_channel_lock`` guards the channel bindings; connected-flag changes are
  applied while it is held.

Locks are always taken in the order channel -> room -> store, and the store
lock is never held while waiting for a room lock.
"""

from __future__ import annotations

import itertools
import logging
import secrets
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

from models import (
    Participant,
    ParticipantSummary,
    Room,
    RoomSummary,
    Story,
    StoryPayload,
    VotingResults,
    VotingSummary,
)
from services.errors import (
    AdminConflictError,
    NotAdminError,
    ParticipantNotFoundError,
    RoomNotFoundError,
    VotingClosedError,
)

logger = logging.getLogger(__name__)

# Avoid 0/O and 1/I/L so codes read back correctly when shared verbally.
ROOM_CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
ROOM_CODE_LENGTH = 6
INACTIVE_ROOM_TIMEOUT = timedelta(hours=4)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    """Owns every room and the channel -> participant bindings."""

    def __init__(self, *, idle_timeout: timedelta = INACTIVE_ROOM_TIMEOUT) -> None:
        self._idle_timeout = idle_timeout
        self._lock = threading.Lock()
        self._rooms: dict[str, Room] = {}
        self._participant_rooms: dict[str, str] = {}
        self._channel_lock = threading.Lock()
        self._channel_participants: dict[str, str] = {}
        self._participant_channels: dict[str, set[str]] = {}
        self._vote_sequence = itertools.count(1)

    @property
    def idle_timeout(self) -> timedelta:
        return self._idle_timeout

    # -- rooms -------------------------------------------------------------

    def create_room(self, name: str, admin_name: str) -> tuple[str, str]:
        """Create a room seeded with one admin; return (room_code, participant_id)."""
        participant_id = str(uuid.uuid4())
        admin = Participant(id=participant_id, name=admin_name, is_admin=True)
        with self._lock:
            room_code = self._generate_room_code()
            self._rooms[room_code] = Room(
                code=room_code,
                name=name,
                admin_id=participant_id,
                participants={participant_id: admin},
            )
            self._participant_rooms[participant_id] = room_code
        logger.info("[store] Room created: room=%s name=%r admin=%s", room_code, name, participant_id)
        return room_code, participant_id

    def join_room(self, room_code: str, user_name: str, wants_admin: bool = False) -> str:
        with self._locked_room(room_code) as room:
            if room is None:
                raise RoomNotFoundError()
            if wants_admin and room.admin is not None:
                raise AdminConflictError()
            participant_id = str(uuid.uuid4())
            room.participants[participant_id] = Participant(
                id=participant_id,
                name=user_name,
                is_admin=wants_admin,
            )
            if wants_admin:
                room.admin_id = participant_id
            room.touch()
            with self._lock:
                self._participant_rooms[participant_id] = room_code
        logger.info(
            "[store] Participant joined: room=%s participant=%s admin=%s",
            room_code,
            participant_id,
            wants_admin,
        )
        return participant_id

    def leave_room(self, room_code: str, participant_id: str) -> bool:
        """Remove a participant; returns False when room or participant is unknown."""
        with self._locked_room(room_code) as room:
            if room is None:
                return False
            participant = room.participants.pop(participant_id, None)
            if participant is None:
                return False
            room.touch()
            with self._lock:
                self._participant_rooms.pop(participant_id, None)
            if not room.participants:
                self._discard_room(room)
                logger.info("[store] Room %s is empty; destroyed", room_code)
            elif participant.is_admin:
                successor = next(iter(room.participants.values()))
                successor.is_admin = True
                room.admin_id = successor.id
                logger.info("[store] Admin left room %s; promoted %s", room_code, successor.id)
        self._forget_channels(participant_id)
        logger.info("[store] Participant left: room=%s participant=%s", room_code, participant_id)
        return True

    def update_story(self, room_code: str, participant_id: str, story: Story) -> None:
        with self._locked_room(room_code) as room:
            self._require_admin(room, participant_id)
            room.story = Story(title=story.title, description=story.description)
            room.touch()

    def submit_vote(self, room_code: str, participant_id: str, estimate: str) -> None:
        """Store ``estimate`` verbatim; an empty string clears the vote."""
        with self._locked_room(room_code) as room:
            participant = self._require_participant(room, participant_id)
            if room.revealed:
                raise VotingClosedError()
            if estimate == "":
                participant.estimate = None
                participant.has_voted = False
                participant.vote_order = None
            else:
                participant.estimate = estimate
                participant.has_voted = True
                participant.vote_order = next(self._vote_sequence)
            room.touch()

    def reveal_votes(self, room_code: str, participant_id: str) -> None:
        with self._locked_room(room_code) as room:
            self._require_admin(room, participant_id)
            room.revealed = True
            room.touch()
        logger.info("[store] Votes revealed in room %s", room_code)

    def reset_voting(self, room_code: str, participant_id: str) -> None:
        with self._locked_room(room_code) as room:
            self._require_admin(room, participant_id)
            room.clear_votes()
            room.revealed = False
            room.estimation_started = False
            room.touch()

    def start_estimation(self, room_code: str, participant_id: str) -> None:
        with self._locked_room(room_code) as room:
            self._require_admin(room, participant_id)
            room.clear_votes()
            room.revealed = False
            room.estimation_started = True
            room.touch()
        logger.info("[store] Estimation started in room %s", room_code)

    # -- projections -------------------------------------------------------

    def get_room_projection(self, room_code: str) -> RoomSummary | None:
        with self._locked_room(room_code) as room:
            if room is None:
                return None
            room.touch()
            return _summarize_room(room)

    def get_participants_projection(self, room_code: str) -> list[ParticipantSummary]:
        with self._locked_room(room_code) as room:
            if room is None:
                return []
            room.touch()
            return _summarize_participants(room)

    def get_voting_results(self, room_code: str) -> VotingResults | None:
        with self._locked_room(room_code) as room:
            if room is None:
                return None
            room.touch()
            return VotingResults(
                revealed=room.revealed,
                votes=_summarize_participants(room),
                summary=_summarize_votes(room),
            )

    def list_rooms(self) -> list[RoomSummary]:
        with self._lock:
            rooms = list(self._rooms.values())
        summaries = []
        for room in rooms:
            with room.lock:
                if not room.closed:
                    summaries.append(_summarize_room(room))
        return summaries

    # -- connections -------------------------------------------------------

    def bind_channel(self, participant_id: str, channel_id: str) -> str | None:
        """
        Attach a transport channel to a participant and mark them connected.

        A channel already bound to someone else is moved. When the move leaves
        that participant with no channels, their id is returned.
        """
        orphaned = None
        with self._channel_lock:
            if self.find_room_by_participant(participant_id) is None:
                raise ParticipantNotFoundError()
            previous = self._channel_participants.get(channel_id)
            if previous is not None and previous != participant_id:
                self._drop_channel(previous, channel_id)
                if previous not in self._participant_channels:
                    orphaned = previous
            self._channel_participants[channel_id] = participant_id
            self._participant_channels.setdefault(participant_id, set()).add(channel_id)
            self._set_connected(participant_id, True)
        logger.debug("[store] Channel %s bound to participant %s", channel_id, participant_id)
        return orphaned

    def unbind_channel(self, channel_id: str) -> str | None:
        """Detach a channel; the participant goes offline only with their last channel."""
        with self._channel_lock:
            participant_id = self._channel_participants.pop(channel_id, None)
            if participant_id is None:
                return None
            self._drop_channel(participant_id, channel_id)
        logger.debug("[store] Channel %s unbound from participant %s", channel_id, participant_id)
        return participant_id

    def has_active_channel(self, participant_id: str) -> bool:
        with self._channel_lock:
            return bool(self._participant_channels.get(participant_id))

    def find_room_by_participant(self, participant_id: str) -> str | None:
        with self._lock:
            return self._participant_rooms.get(participant_id)

    def participant_for_channel(self, channel_id: str) -> str | None:
        with self._channel_lock:
            return self._channel_participants.get(channel_id)

    def room_for_channel(self, channel_id: str) -> str | None:
        """Room of the participant bound to ``channel_id``; None once they left or the room is gone."""
        with self._channel_lock:
            participant_id = self._channel_participants.get(channel_id)
            if participant_id is None:
                return None
            return self.find_room_by_participant(participant_id)

    # -- housekeeping ------------------------------------------------------

    def evict_idle_rooms(self, now: datetime | None = None) -> list[str]:
        """Remove rooms whose last activity is older than the idle timeout."""
        now = now or _utcnow()
        with self._lock:
            candidates = list(self._rooms.values())
        evicted: list[str] = []
        departed: list[str] = []
        for room in candidates:
            with room.lock:
                if room.closed or now - room.last_activity <= self._idle_timeout:
                    continue
                departed.extend(room.participants)
                self._discard_room(room)
            evicted.append(room.code)
            logger.info("[store] Evicted inactive room %s", room.code)
        for participant_id in departed:
            self._forget_channels(participant_id)
        return evicted

    # -- internals ---------------------------------------------------------

    @contextmanager
    def _locked_room(self, room_code: str) -> Iterator[Room | None]:
        with self._lock:
            room = self._rooms.get(room_code)
        if room is None:
            yield None
            return
        with room.lock:
            yield None if room.closed else room

    def _generate_room_code(self) -> str:
        # Caller holds self._lock.
        while True:
            code = "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))
            if code not in self._rooms:
                return code

    def _discard_room(self, room: Room) -> None:
        # Caller holds room.lock.
        room.closed = True
        with self._lock:
            self._rooms.pop(room.code, None)
            for participant_id in room.participants:
                self._participant_rooms.pop(participant_id, None)

    @staticmethod
    def _require_participant(room: Room | None, participant_id: str) -> Participant:
        if room is None:
            raise RoomNotFoundError()
        participant = room.participants.get(participant_id)
        if participant is None:
            raise ParticipantNotFoundError()
        return participant

    def _require_admin(self, room: Room | None, participant_id: str) -> Participant:
        participant = self._require_participant(room, participant_id)
        if not participant.is_admin:
            raise NotAdminError()
        return participant

    def _drop_channel(self, participant_id: str, channel_id: str) -> None:
        # Caller holds self._channel_lock.
        channels = self._participant_channels.get(participant_id)
        if channels is not None:
            channels.discard(channel_id)
        if not channels:
            self._participant_channels.pop(participant_id, None)
            self._set_connected(participant_id, False)

    def _set_connected(self, participant_id: str, connected: bool) -> None:
        room_code = self.find_room_by_participant(participant_id)
        if room_code is None:
            return
        with self._locked_room(room_code) as room:
            if room is None:
                return
            participant = room.participants.get(participant_id)
            if participant is not None:
                participant.connected = connected
                room.touch()

    def _forget_channels(self, participant_id: str) -> None:
        with self._channel_lock:
            for channel_id in self._participant_channels.pop(participant_id, set()):
                self._channel_participants.pop(channel_id, None)


def _summarize_room(room: Room) -> RoomSummary:
    admin = room.admin
    return RoomSummary(
        id=room.code,
        name=room.name,
        participant_count=len(room.participants),
        admin_name=admin.name if admin else None,
        story=StoryPayload(title=room.story.title, description=room.story.description),
        revealed=room.revealed,
        estimation_started=room.estimation_started,
        created_at=room.created_at,
        last_activity=room.last_activity,
    )


def _summarize_participants(room: Room) -> list[ParticipantSummary]:
    return [
        ParticipantSummary(
            id=p.id,
            name=p.name,
            is_admin=p.is_admin,
            has_voted=p.has_voted,
            estimate=p.estimate if room.revealed else None,
            connected=p.connected,
        )
        for p in room.participants.values()
    ]


def _summarize_votes(room: Room) -> VotingSummary:
    """
    Count votes in submission order.

    Ties on the most common estimate go to the value that reached the winning
    count first. Values stay out of the summary until the room is revealed.
    """
    voters = sorted(
        (p for p in room.participants.values() if p.has_voted),
        key=lambda p: p.vote_order or 0,
    )
    summary = VotingSummary(total_votes=len(voters))
    if not room.revealed:
        return summary

    counts: dict[str, int] = {}
    best_count = 0
    for participant in voters:
        if not participant.estimate:
            continue
        counts[participant.estimate] = counts.get(participant.estimate, 0) + 1
        if counts[participant.estimate] > best_count:
            best_count = counts[participant.estimate]
            summary.most_common = participant.estimate
    summary.unique_estimates = list(counts)
    return summary
