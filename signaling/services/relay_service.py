import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from signaling.context import ServiceContext
from signaling.exceptions import UnknownSessionError
from signaling.models.api.participants import ParticipantResponse
from signaling.models.api.signaling import (
    Delivery,
    PostMessagesResponse,
    SignalingMessage,
)
from signaling.repositories.room_repository import RoomRepository

logger = logging.getLogger(__name__)


class RelayService:
    """Server half of the polling relay: accepts batches and serves pulls."""

    def __init__(self, db: AsyncSession, context: ServiceContext):
        self.db = db
        self.context = context
        self.broker = context.broker
        self.presence = context.presence(db)
        self.sessions = context.session_manager(db)
        self.room_repo = RoomRepository(db)

    async def _require_session(self, session_id: Optional[str]) -> ParticipantResponse:
        participant = await self.sessions.resolve(session_id)
        if participant is None:
            raise UnknownSessionError("Unknown signaling session")
        return participant

    async def post_messages(
        self, session_id: Optional[str], messages: List[SignalingMessage]
    ) -> PostMessagesResponse:
        """
        Route a batch of messages from the caller's session:
        1. Resolve the sender and the active sessions of its room
        2. Deliver addressed messages to their recipient in that room
        3. Fan out messages without recipient to everybody else in the room

        Sessions that stopped pinging receive nothing.
        """
        sender = await self._require_session(session_id)
        room = await self.room_repo.get_by_id(sender.room_id)
        room_sessions = set(await self.presence.active_sessions(room)) if room else set()

        delivered = 0
        for message in messages:
            message.sender_session = sender.session_id or ""
            if message.recipient_session:
                if message.recipient_session not in room_sessions:
                    logger.info("Dropping %s for a session outside the room", message.kind.value)
                    continue
                recipients = [message.recipient_session]
            else:
                recipients = [s for s in room_sessions if s != sender.session_id]

            delivered += await self.broker.publish(
                recipients,
                Delivery(type="message", data=message.model_dump(mode="json")),
            )

        return PostMessagesResponse(accepted=len(messages), delivered=delivered)

    async def pull_messages(self, session_id: Optional[str]) -> List[Delivery]:
        """Long-poll the caller's queue, then append a snapshot of the room."""
        participant = await self._require_session(session_id)
        # Release the connection while waiting
        await self.db.commit()

        deliveries = await self.broker.drain(
            participant.session_id or "", self.context.settings.pull_timeout
        )

        room = await self.room_repo.get_by_id(participant.room_id)
        if room is not None:
            connected = await self.presence.connected(room)
            deliveries.append(
                Delivery(
                    type="usersInRoom",
                    data=[p.model_dump(mode="json") for p in connected],
                )
            )
        return deliveries
