"""Room REST API. Translates SessionStore results into HTTP responses; holds no state."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from models import ParticipantSummary, RoomSummary, Story, VotingResults
from services.errors import ForbiddenError, NotFoundError, SessionError
from services.store import ROOM_CODE_LENGTH, SessionStore

router = APIRouter(prefix="/rooms", tags=["rooms"])
logger = logging.getLogger(__name__)


class CreateRoomRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    room_name: str = Field(min_length=1)
    admin_name: str = Field(min_length=1)


class CreateRoomResponse(BaseModel):
    room_id: str
    participant_id: str


class JoinRoomRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    user_name: str = Field(min_length=1)
    is_admin: bool = False


class JoinRoomResponse(BaseModel):
    participant_id: str


class ParticipantRequest(BaseModel):
    participant_id: str = Field(min_length=1)


class StoryUpdateRequest(ParticipantRequest):
    title: str = ""
    description: str = ""


class VoteRequest(ParticipantRequest):
    estimate: str = Field(min_length=1)


class MessageResponse(BaseModel):
    message: str


def get_store(request: Request) -> SessionStore:
    return request.app.state.store


def valid_room_id(room_id: str) -> str:
    if len(room_id) != ROOM_CODE_LENGTH:
        raise HTTPException(status_code=400, detail="Invalid room ID format")
    return room_id


StoreDep = Annotated[SessionStore, Depends(get_store)]
RoomIdDep = Annotated[str, Depends(valid_room_id)]


def _http_error(exc: SessionError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        status_code = 404
    elif isinstance(exc, ForbiddenError):
        status_code = 403
    else:
        status_code = 400
    return HTTPException(status_code=status_code, detail=exc.message)


@router.get("", response_model=list[RoomSummary])
def list_rooms(store: StoreDep) -> list[RoomSummary]:
    return store.list_rooms()


@router.post("", response_model=CreateRoomResponse, status_code=201)
def create_room(body: CreateRoomRequest, store: StoreDep) -> CreateRoomResponse:
    """Create a room; the caller becomes its admin."""
    room_id, participant_id = store.create_room(body.room_name, body.admin_name)
    logger.info("[rooms] POST /rooms -> 201 room=%s", room_id)
    return CreateRoomResponse(room_id=room_id, participant_id=participant_id)


@router.get("/{room_id}", response_model=RoomSummary)
def get_room(room_id: RoomIdDep, store: StoreDep) -> RoomSummary:
    summary = store.get_room_projection(room_id)
    if summary is None:
        raise HTTPException(status_code=404, detail="Room not found")
    return summary


@router.post("/{room_id}/join", response_model=JoinRoomResponse, status_code=201)
def join_room(room_id: RoomIdDep, body: JoinRoomRequest, store: StoreDep) -> JoinRoomResponse:
    try:
        participant_id = store.join_room(room_id, body.user_name, body.is_admin)
    except SessionError as exc:
        logger.info("[rooms] Join rejected for room %s: %s", room_id, exc.message)
        raise _http_error(exc) from exc
    return JoinRoomResponse(participant_id=participant_id)


@router.delete("/{room_id}/participants/{participant_id}", response_model=MessageResponse)
def leave_room(room_id: RoomIdDep, participant_id: str, store: StoreDep) -> MessageResponse:
    if not store.leave_room(room_id, participant_id):
        raise HTTPException(status_code=404, detail="Room or participant not found")
    return MessageResponse(message="Participant left room successfully")


@router.put("/{room_id}/story", response_model=MessageResponse)
def update_story(room_id: RoomIdDep, body: StoryUpdateRequest, store: StoreDep) -> MessageResponse:
    try:
        store.update_story(
            room_id,
            body.participant_id,
            Story(title=body.title, description=body.description),
        )
    except SessionError as exc:
        raise _http_error(exc) from exc
    return MessageResponse(message="Story updated successfully")


@router.post("/{room_id}/vote", response_model=MessageResponse)
def submit_vote(room_id: RoomIdDep, body: VoteRequest, store: StoreDep) -> MessageResponse:
    try:
        store.submit_vote(room_id, body.participant_id, body.estimate)
    except SessionError as exc:
        raise _http_error(exc) from exc
    return MessageResponse(message="Vote submitted successfully")


@router.post("/{room_id}/reveal", response_model=MessageResponse)
def reveal_votes(room_id: RoomIdDep, body: ParticipantRequest, store: StoreDep) -> MessageResponse:
    try:
        store.reveal_votes(room_id, body.participant_id)
    except SessionError as exc:
        raise _http_error(exc) from exc
    return MessageResponse(message="Votes revealed successfully")


@router.post("/{room_id}/reset", response_model=MessageResponse)
def reset_voting(room_id: RoomIdDep, body: ParticipantRequest, store: StoreDep) -> MessageResponse:
    try:
        store.reset_voting(room_id, body.participant_id)
    except SessionError as exc:
        raise _http_error(exc) from exc
    return MessageResponse(message="Voting reset successfully")


@router.get("/{room_id}/results", response_model=VotingResults)
def get_results(room_id: RoomIdDep, store: StoreDep) -> VotingResults:
    results = store.get_voting_results(room_id)
    if results is None:
        raise HTTPException(status_code=404, detail="Room not found")
    return results


@router.get("/{room_id}/participants", response_model=list[ParticipantSummary])
def get_participants(room_id: RoomIdDep, store: StoreDep) -> list[ParticipantSummary]:
    return store.get_participants_projection(room_id)
