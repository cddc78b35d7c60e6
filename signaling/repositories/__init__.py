# Repository classes for database operations
from .base_repository import BaseRepository
from .participant_repository import ParticipantRepository
from .room_repository import RoomRepository

__all__ = [
    "BaseRepository",
    "ParticipantRepository",
    "RoomRepository",
]
