# API models for request/response contracts
from .calls import JoinCallResponse, PeerContact
from .participants import ActiveParticipants, ParticipantResponse
from .rooms import (
    ChangeRoomTypeRequest,
    CreateRoomRequest,
    RenameRoomRequest,
    RoomResponse,
)
from .signaling import (
    Delivery,
    PostMessagesRequest,
    PostMessagesResponse,
    SignalingMessage,
    SignalingMessageKind,
)

__all__ = [
    "ActiveParticipants",
    "ChangeRoomTypeRequest",
    "CreateRoomRequest",
    "Delivery",
    "JoinCallResponse",
    "ParticipantResponse",
    "PeerContact",
    "PostMessagesRequest",
    "PostMessagesResponse",
    "RenameRoomRequest",
    "RoomResponse",
    "SignalingMessage",
    "SignalingMessageKind",
]
