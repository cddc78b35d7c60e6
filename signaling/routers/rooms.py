from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from signaling.context import ServiceContext
from signaling.database import get_db
from signaling.dependencies import get_context, get_user_id
from signaling.exceptions import ParticipantNotFoundError, RoomNotFoundError
from signaling.models.api.rooms import (
    ChangeRoomTypeRequest,
    CreateRoomRequest,
    RenameRoomRequest,
    RoomResponse,
)
from signaling.models.enums import MANAGING_ROLES
from signaling.services.room_store import RoomStore

router = APIRouter()


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user_id


async def _managed_room(store: RoomStore, token: str, user_id: str) -> RoomResponse:
    """Resolve a room the caller owns or moderates."""
    try:
        room = await store.get_room_for_participant(token, user_id)
        participant = await store.get_participant(room, user_id)
    except (RoomNotFoundError, ParticipantNotFoundError):
        raise HTTPException(status_code=404, detail=f"Room {token} not found")
    if participant.role not in MANAGING_ROLES:
        raise HTTPException(status_code=403, detail="Not a moderator of this room")
    return room


@router.get("", response_model=List[RoomResponse])
async def list_rooms(
    user_id: Optional[str] = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    context: ServiceContext = Depends(get_context),
) -> List[RoomResponse]:
    """List the rooms the caller participates in."""
    store = context.room_store(db)
    return await store.list_rooms_for_user(_require_user(user_id))


@router.post("", response_model=RoomResponse, status_code=201)
async def create_room(
    request: CreateRoomRequest,
    user_id: Optional[str] = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    context: ServiceContext = Depends(get_context),
) -> RoomResponse:
    """Create a room owned by the caller."""
    store = context.room_store(db)
    return await store.create_room(
        request.kind, request.name, owner_id=_require_user(user_id)
    )


@router.get("/{token}", response_model=RoomResponse)
async def get_room(
    token: str,
    user_id: Optional[str] = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    context: ServiceContext = Depends(get_context),
) -> RoomResponse:
    try:
        store = context.room_store(db)
        return await store.get_room_for_participant(token, user_id)
    except RoomNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.put("/{token}/name", response_model=RoomResponse)
async def rename_room(
    token: str,
    request: RenameRoomRequest,
    user_id: Optional[str] = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    context: ServiceContext = Depends(get_context),
) -> RoomResponse:
    """Rename a room. One-to-one rooms cannot be renamed."""
    store = context.room_store(db)
    room = await _managed_room(store, token, _require_user(user_id))
    if not await store.set_name(room, request.name):
        raise HTTPException(status_code=400, detail="This room can not be renamed")
    return room


@router.put("/{token}/type", response_model=RoomResponse)
async def change_room_type(
    token: str,
    request: ChangeRoomTypeRequest,
    user_id: Optional[str] = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    context: ServiceContext = Depends(get_context),
) -> RoomResponse:
    """Switch a room between group and public."""
    store = context.room_store(db)
    room = await _managed_room(store, token, _require_user(user_id))
    if not await store.change_type(room, request.kind):
        raise HTTPException(status_code=400, detail="Invalid room type change")
    return room


@router.delete("/{token}")
async def delete_room(
    token: str,
    user_id: Optional[str] = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    context: ServiceContext = Depends(get_context),
) -> Dict[str, str]:
    store = context.room_store(db)
    room = await _managed_room(store, token, _require_user(user_id))
    await store.delete_room(room)
    return {"status": "deleted"}
