import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from signaling.context import ServiceContext
from signaling.database import get_db
from signaling.dependencies import get_context, get_session_id, get_user_id
from signaling.exceptions import RoomNotFoundError, SessionAllocationError
from signaling.models.api.calls import JoinCallResponse
from signaling.models.api.participants import ParticipantResponse
from signaling.services.call_service import CallService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/{token}", response_model=JoinCallResponse)
async def join_call(
    token: str,
    user_id: Optional[str] = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    context: ServiceContext = Depends(get_context),
) -> JoinCallResponse:
    """
    Join the call of a room.

    Returns the new signaling session and the peers the caller has to send
    an offer to.
    """
    try:
        service = CallService(db, context)
        return await service.join(token, user_id)
    except RoomNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SessionAllocationError as e:
        logger.error("Session allocation failed for room %s: %s", token, e)
        raise HTTPException(status_code=503, detail="Could not allocate a session")
    except Exception:
        logger.exception("Unexpected error joining call %s", token)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("/{token}")
async def leave_call(
    token: str,
    user_id: Optional[str] = Depends(get_user_id),
    session_id: Optional[str] = Depends(get_session_id),
    db: AsyncSession = Depends(get_db),
    context: ServiceContext = Depends(get_context),
) -> Dict[str, str]:
    """Leave the call of a room. Leaving twice is not an error."""
    service = CallService(db, context)
    await service.leave(token, user_id, session_id)
    return {"status": "left"}


@router.get("/{token}", response_model=List[ParticipantResponse])
async def list_peers(
    token: str,
    user_id: Optional[str] = Depends(get_user_id),
    session_id: Optional[str] = Depends(get_session_id),
    db: AsyncSession = Depends(get_db),
    context: ServiceContext = Depends(get_context),
) -> List[ParticipantResponse]:
    """List the connected participants of the room's call."""
    try:
        service = CallService(db, context)
        return await service.list_peers(token, user_id, session_id)
    except RoomNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{token}/ping")
async def ping_call(
    token: str,
    user_id: Optional[str] = Depends(get_user_id),
    session_id: Optional[str] = Depends(get_session_id),
    db: AsyncSession = Depends(get_db),
    context: ServiceContext = Depends(get_context),
) -> Dict[str, bool]:
    """Keep the caller's session alive."""
    try:
        service = CallService(db, context)
        refreshed = await service.ping(token, user_id, session_id)
        return {"refreshed": refreshed}
    except RoomNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
