"""Rejections raised by the session store.

Every error leaves the store untouched; gateways translate them into an HTTP
status or an ``error`` event.
"""


class SessionError(Exception):
    """Base class for rejected session operations."""

    default_message = "Session operation rejected"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(SessionError):
    default_message = "Not found"


class RoomNotFoundError(NotFoundError):
    default_message = "Room not found"


class ParticipantNotFoundError(NotFoundError):
    default_message = "Participant not found"


class ForbiddenError(SessionError):
    default_message = "Operation not permitted"


class NotAdminError(ForbiddenError):
    default_message = "Only the room admin can do that"


class AdminConflictError(ForbiddenError):
    default_message = "Admin already exists in this room"


class InvalidStateError(SessionError):
    default_message = "Operation not allowed in the current room state"


class VotingClosedError(InvalidStateError):
    default_message = "Votes are already revealed; reset voting to vote again"
