from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from signaling.context import ServiceContext
from signaling.database import get_db
from signaling.dependencies import get_context, get_session_id
from signaling.exceptions import UnknownSessionError
from signaling.models.api.signaling import (
    Delivery,
    PostMessagesRequest,
    PostMessagesResponse,
)
from signaling.services.relay_service import RelayService

router = APIRouter()


@router.post("", response_model=PostMessagesResponse)
async def post_messages(
    request: PostMessagesRequest,
    session_id: Optional[str] = Depends(get_session_id),
    db: AsyncSession = Depends(get_db),
    context: ServiceContext = Depends(get_context),
) -> PostMessagesResponse:
    """Queue a batch of signaling messages for delivery."""
    try:
        service = RelayService(db, context)
        return await service.post_messages(session_id, request.messages)
    except UnknownSessionError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("", response_model=List[Delivery])
async def pull_messages(
    session_id: Optional[str] = Depends(get_session_id),
    db: AsyncSession = Depends(get_db),
    context: ServiceContext = Depends(get_context),
) -> List[Delivery]:
    """
    Long-poll for deliveries addressed to the caller's session.

    The response ends with a `usersInRoom` snapshot of the caller's room.
    """
    try:
        service = RelayService(db, context)
        return await service.pull_messages(session_id)
    except UnknownSessionError as e:
        raise HTTPException(status_code=404, detail=str(e))
