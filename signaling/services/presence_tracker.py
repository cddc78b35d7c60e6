import asyncio
import logging
import time
from typing import Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from signaling.models.api.participants import ActiveParticipants, ParticipantResponse
from signaling.models.api.rooms import RoomResponse
from signaling.repositories.participant_repository import ParticipantRepository
from signaling.services.message_broker import MessageBroker

logger = logging.getLogger(__name__)


class PresenceTracker:
    """Liveness bookkeeping based on participant ping timestamps."""

    def __init__(
        self,
        db: AsyncSession,
        peer_timeout: int = 30,
        clock: Callable[[], float] = time.time,
        broker: Optional[MessageBroker] = None,
    ):
        self.db = db
        self.participant_repo = ParticipantRepository(db)
        self.peer_timeout = peer_timeout
        self.clock = clock
        self.broker = broker

    def now(self) -> int:
        return int(self.clock())

    async def ping(
        self,
        room: RoomResponse,
        user_id: Optional[str],
        session_id: str,
        timestamp: Optional[int] = None,
    ) -> bool:
        """Refresh the ping of the caller's row.

        Pings from a session that no longer holds the row are ignored.
        """
        if timestamp is None:
            timestamp = self.now()
        updated = await self.participant_repo.ping(
            room.id, user_id or "", session_id, timestamp
        )
        if not updated:
            logger.debug("Ignoring ping from stale session in room %s", room.token)
        return bool(updated)

    async def list_active(self, room: RoomResponse, since: int = 0) -> ActiveParticipants:
        """Participants of the room, split into named users and guests.

        With ``since`` > 0 only rows pinged after that timestamp are returned.
        """
        users = {}
        guests = []
        for participant in await self.participant_repo.list_by_room(room.id, since):
            if participant.is_guest:
                guests.append(participant)
            else:
                users[participant.user_id] = participant
        return ActiveParticipants(users=users, guests=guests)

    async def count(self, room: RoomResponse, since: int = 0) -> int:
        return await self.participant_repo.count_by_room(room.id, since)

    async def connected(self, room: RoomResponse) -> List[ParticipantResponse]:
        """Rows holding a session that pinged within the peer timeout."""
        active = await self.list_active(room, self.now() - self.peer_timeout)
        return [p for p in active.all() if p.session_id]

    async def active_sessions(self, room: RoomResponse) -> List[str]:
        return [p.session_id for p in await self.connected(room) if p.session_id]

    async def prune_stale_guests(
        self, room: Optional[RoomResponse] = None, max_age: int = 30
    ) -> int:
        """Delete guests whose last ping is older than ``max_age`` seconds.

        Named users are never pruned. Without a room every room is swept.
        """
        sessions = await self.participant_repo.delete_stale_guests(
            self.now() - max_age, room.id if room else None
        )
        if self.broker is not None:
            await self.broker.discard_all(sessions)
        if sessions:
            logger.info("Pruned %d stale guests", len(sessions))
        return len(sessions)


async def run_guest_sweeper(
    session_factory: async_sessionmaker,
    interval: float,
    max_age: int = 30,
    broker: Optional[MessageBroker] = None,
) -> None:
    """Periodically prune stale guests in all rooms until cancelled."""
    logger.info("Guest sweeper started (every %.1fs)", interval)
    while True:
        await asyncio.sleep(interval)
        try:
            async with session_factory() as session:
                tracker = PresenceTracker(session, broker=broker)
                await tracker.prune_stale_guests(max_age=max_age)
        except Exception:
            logger.exception("Guest sweep failed")
