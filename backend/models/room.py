import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Story:
    title: str = ""
    description: str = ""


@dataclass
class Participant:
    id: str                                # uuid4
    name: str
    is_admin: bool = False
    estimate: str | None = None            # None until voted, or after a clear/reset
    has_voted: bool = False
    vote_order: int | None = None          # submission sequence of the current vote
    joined_at: datetime = field(default_factory=_utcnow)
    connected: bool = False                # true while at least one channel is bound


@dataclass
class Room:
    code: str                              # 6-char public room code
    name: str
    admin_id: str | None = None
    participants: dict[str, Participant] = field(default_factory=dict)
    story: Story = field(default_factory=Story)
    revealed: bool = False
    estimation_started: bool = False
    created_at: datetime = field(default_factory=_utcnow)
    last_activity: datetime = field(default_factory=_utcnow)
    closed: bool = False                   # set once removed from the store
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def admin(self) -> Participant | None:
        if self.admin_id is None:
            return None
        return self.participants.get(self.admin_id)

    def touch(self, now: datetime | None = None) -> None:
        self.last_activity = now or _utcnow()

    def clear_votes(self) -> None:
        for participant in self.participants.values():
            participant.estimate = None
            participant.has_voted = False
            participant.vote_order = None
