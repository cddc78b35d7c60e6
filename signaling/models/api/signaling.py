import enum
from datetime import datetime, timezone
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field


class SignalingMessageKind(str, enum.Enum):
    OFFER = "offer"
    ANSWER = "answer"
    CANDIDATE = "candidate"
    CUSTOM = "custom"


class SignalingMessage(BaseModel):
    """Opaque call-setup payload relayed between two sessions."""

    sender_session: str = ""
    recipient_session: Optional[str] = Field(
        default=None, description="Target session, broadcast to the room when empty"
    )
    kind: SignalingMessageKind = SignalingMessageKind.CUSTOM
    payload: Any = None
    enqueued_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class PostMessagesRequest(BaseModel):
    """Request model for posting a batch of signaling messages."""

    messages: List[SignalingMessage]


class PostMessagesResponse(BaseModel):
    accepted: int
    delivered: int


class Delivery(BaseModel):
    """One entry returned by the pull endpoint."""

    type: Literal["usersInRoom", "message"]
    data: Any
