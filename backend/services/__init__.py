from .room_hub import Channel, RoomHub
from .store import SessionStore

__all__ = ["SessionStore", "RoomHub", "Channel"]
