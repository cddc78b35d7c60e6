from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from signaling.models.enums import RoomKind


class RoomResponse(BaseModel):
    """Response model for room data."""

    id: Optional[int] = None
    kind: RoomKind
    token: str
    name: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CreateRoomRequest(BaseModel):
    """Request model for creating a room."""

    kind: RoomKind = Field(..., description="Room kind")
    name: str = Field("", description="Display name", max_length=255)


class RenameRoomRequest(BaseModel):
    """Request model for renaming a room."""

    name: str = Field(..., max_length=255)


class ChangeRoomTypeRequest(BaseModel):
    """Request model for changing the kind of a room."""

    kind: RoomKind
