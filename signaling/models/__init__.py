# Export API models and enums. The SQLAlchemy models live in
# signaling.models.db and need a configured database, so they are not
# imported here; the client package only depends on this module.
from .api import (
    ActiveParticipants,
    Delivery,
    JoinCallResponse,
    ParticipantResponse,
    PeerContact,
    RoomResponse,
    SignalingMessage,
    SignalingMessageKind,
)
from .enums import ParticipantRole, RoomKind

__all__ = [
    # API models
    "ActiveParticipants",
    "Delivery",
    "JoinCallResponse",
    "ParticipantResponse",
    "PeerContact",
    "RoomResponse",
    "SignalingMessage",
    "SignalingMessageKind",
    # Enums
    "ParticipantRole",
    "RoomKind",
]
