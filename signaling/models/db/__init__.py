# SQLAlchemy database models
from .participant_model import ParticipantModel
from .room_model import RoomModel

__all__ = ["ParticipantModel", "RoomModel"]
