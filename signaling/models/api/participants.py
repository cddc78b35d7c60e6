from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from signaling.models.enums import ParticipantRole


class ParticipantResponse(BaseModel):
    """Response model for participant data."""

    id: Optional[int] = None
    room_id: int
    user_id: str  # Empty for guests
    role: ParticipantRole
    session_id: Optional[str] = None
    last_ping: int = 0

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_guest(self) -> bool:
        return not self.user_id


class ActiveParticipants(BaseModel):
    """Participants of a room partitioned into named users and guests."""

    users: Dict[str, ParticipantResponse]
    guests: List[ParticipantResponse]

    def all(self) -> List[ParticipantResponse]:
        return list(self.users.values()) + list(self.guests)
