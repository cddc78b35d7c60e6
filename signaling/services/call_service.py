import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from signaling.context import ServiceContext
from signaling.exceptions import RoomNotFoundError
from signaling.models.api.calls import JoinCallResponse, PeerContact
from signaling.models.api.participants import ParticipantResponse

logger = logging.getLogger(__name__)


def compute_peer_contacts(
    session_id: str, peer_sessions: Iterable[str]
) -> Dict[str, PeerContact]:
    """Sessions the newly joined ``session_id`` has to send an offer to.

    Of every pair of sessions only the one with the larger id initiates, so a
    full mesh gets exactly one offer per pair.
    """
    return {
        peer: PeerContact(video=True)
        for peer in peer_sessions
        if peer and peer < session_id
    }


class CallService:
    """Join/leave protocol of a call and liveness pings."""

    def __init__(self, db: AsyncSession, context: ServiceContext):
        self.db = db
        self.context = context
        self.rooms = context.room_store(db)
        self.sessions = context.session_manager(db)
        self.presence = context.presence(db)

    async def join(self, token: str, user_id: Optional[str]) -> JoinCallResponse:
        """
        Join the call of a room:
        1. Resolve the room the caller may access
        2. Bind a fresh session
        3. Prune stale guests
        4. Compute which active peers the caller has to contact
        """
        room = await self.rooms.get_room_for_participant(token, user_id)

        if user_id:
            session_id = await self.sessions.bind_as_user(room, user_id)
        else:
            session_id = await self.sessions.bind_as_guest(room)

        await self.presence.prune_stale_guests(
            room, self.context.settings.guest_max_age
        )

        peers = [s for s in await self.presence.active_sessions(room) if s != session_id]
        clients = compute_peer_contacts(session_id, peers)
        logger.info(
            "Session joined call in %s, %d of %d peers to contact",
            room.token,
            len(clients),
            len(peers),
        )
        return JoinCallResponse(session_id=session_id, clients=clients)

    async def leave(
        self, token: str, user_id: Optional[str], session_id: Optional[str]
    ) -> None:
        """Leave the call; leaving a call that was not joined is a no-op."""
        if not session_id:
            return
        try:
            room = await self.rooms.get_room_for_participant(token, user_id, session_id)
        except RoomNotFoundError:
            return

        if await self.sessions.release(room, session_id):
            logger.info("Session left call in %s", room.token)
        await self.context.broker.discard(session_id)

    async def list_peers(
        self, token: str, user_id: Optional[str], session_id: Optional[str] = None
    ) -> List[ParticipantResponse]:
        """Connected participants of the room's call."""
        room = await self.rooms.get_room_for_participant(token, user_id, session_id)
        await self.presence.prune_stale_guests(
            room, self.context.settings.guest_max_age
        )
        return await self.presence.connected(room)

    async def ping(
        self, token: str, user_id: Optional[str], session_id: Optional[str]
    ) -> bool:
        """Refresh the caller's liveness; raises RoomNotFoundError for unknown rooms."""
        room = await self.rooms.get_room_for_participant(token, user_id, session_id)
        if not session_id:
            return False
        return await self.presence.ping(room, user_id, session_id)
