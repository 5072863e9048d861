from enum import StrEnum


class ClientEvent(StrEnum):
    JOIN_ROOM = "join-room"
    LEAVE_ROOM = "leave-room"
    START_ESTIMATION = "start-estimation"
    SUBMIT_VOTE = "submit-vote"
    REVEAL_VOTES = "reveal-votes"
    RESET_VOTING = "reset-voting"
    UPDATE_STORY = "update-story"


class ServerEvent(StrEnum):
    ROOM_STATE = "room-state"
    USER_JOINED = "user-joined"
    USER_LEFT = "user-left"
    USER_DISCONNECTED = "user-disconnected"
    ESTIMATION_STARTED = "estimation-started"
    VOTE_SUBMITTED = "vote-submitted"
    VOTES_REVEALED = "votes-revealed"
    VOTING_RESET = "voting-reset"
    STORY_UPDATED = "story-updated"
    ERROR = "error"
