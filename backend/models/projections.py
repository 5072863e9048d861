"""Read-only snapshots handed out by the session store.

These are the only shapes that leave the store: both gateways serialize them
as-is, so a hidden vote must never be present in any of them.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class StoryPayload(BaseModel):
    title: str = ""
    description: str = ""


class RoomSummary(BaseModel):
    id: str
    name: str
    participant_count: int
    admin_name: str | None = None
    story: StoryPayload
    revealed: bool
    estimation_started: bool
    created_at: datetime
    last_activity: datetime


class ParticipantSummary(BaseModel):
    id: str
    name: str
    is_admin: bool
    has_voted: bool
    estimate: str | None = None            # only populated once votes are revealed
    connected: bool


class VotingSummary(BaseModel):
    total_votes: int = 0
    unique_estimates: list[str] = Field(default_factory=list)
    most_common: str | None = None


class VotingResults(BaseModel):
    revealed: bool
    votes: list[ParticipantSummary]
    summary: VotingSummary
