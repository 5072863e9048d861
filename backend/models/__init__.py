from .events import ClientEvent, ServerEvent
from .projections import (
    ParticipantSummary,
    RoomSummary,
    StoryPayload,
    VotingResults,
    VotingSummary,
)
from .room import Participant, Room, Story

__all__ = [
    "Room",
    "Participant",
    "Story",
    "RoomSummary",
    "ParticipantSummary",
    "StoryPayload",
    "VotingSummary",
    "VotingResults",
    "ClientEvent",
    "ServerEvent",
]
