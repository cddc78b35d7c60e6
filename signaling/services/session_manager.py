import logging
import time
from typing import Awaitable, Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from signaling.exceptions import RoomNotFoundError, SessionAllocationError
from signaling.models.api.participants import ParticipantResponse
from signaling.models.api.rooms import RoomResponse
from signaling.models.enums import ParticipantRole, RoomKind
from signaling.repositories.participant_repository import ParticipantRepository
from signaling.services.message_broker import MessageBroker
from signaling.tokens import generate_session_id

logger = logging.getLogger(__name__)


class SessionManager:
    """Allocates signaling sessions and binds them to participant rows.

    Uniqueness is never checked with a separate read. A candidate id is
    written directly and the UNIQUE constraint on ``participants.session_id``
    rejects duplicates; the transaction is then rolled back and the write is
    retried with a new id.
    """

    def __init__(
        self,
        db: AsyncSession,
        session_id_length: int = 255,
        max_attempts: int = 10,
        id_factory: Optional[Callable[[], str]] = None,
        clock: Callable[[], float] = time.time,
        broker: Optional[MessageBroker] = None,
    ):
        self.db = db
        self.participant_repo = ParticipantRepository(db)
        self.broker = broker
        self.max_attempts = max_attempts
        self.clock = clock
        self._id_factory = id_factory or (
            lambda: generate_session_id(session_id_length)
        )

    def allocate(self) -> str:
        """Generate a candidate session id."""
        return self._id_factory()

    async def _commit_unique(self, write: Callable[[str], Awaitable[None]]) -> str:
        for attempt in range(1, self.max_attempts + 1):
            session_id = self.allocate()
            try:
                await write(session_id)
                await self.participant_repo.commit()
                return session_id
            except IntegrityError:
                await self.participant_repo.rollback()
                logger.debug("Session id collision on attempt %d, regenerating", attempt)
        raise SessionAllocationError(
            f"No unique session id after {self.max_attempts} attempts"
        )

    async def bind_as_user(self, room: RoomResponse, user_id: str) -> str:
        """Bind a fresh session to the user's row in ``room``.

        Users without a row may only enter public rooms, where they are added
        as self-joined. The user's sessions in all other rooms are cleared.
        """
        now = int(self.clock())
        superseded: List[str] = []

        async def write(session_id: str) -> None:
            superseded.clear()
            existing = await self.participant_repo.get(room.id, user_id)
            if existing is not None:
                if existing.session_id:
                    superseded.append(existing.session_id)
                await self.participant_repo.assign_session(
                    room.id, user_id, session_id, now, commit=False
                )
            else:
                if room.kind != RoomKind.PUBLIC:
                    raise RoomNotFoundError(room.token)
                # User joining a public room without being invited
                await self.participant_repo.add_participant(
                    room.id,
                    user_id,
                    ParticipantRole.USER_SELF_JOINED,
                    session_id=session_id,
                    last_ping=now,
                    commit=False,
                )
            superseded.extend(
                await self.participant_repo.clear_sessions_elsewhere(
                    user_id, room.id, commit=False
                )
            )

        try:
            session_id = await self._commit_unique(write)
        except RoomNotFoundError:
            await self.participant_repo.rollback()
            raise
        if self.broker is not None:
            await self.broker.discard_all(superseded)
        logger.info("User %s entered room %s", user_id, room.token)
        return session_id

    async def bind_as_guest(self, room: RoomResponse) -> str:
        """Insert a new guest row holding a fresh session."""
        now = int(self.clock())

        async def write(session_id: str) -> None:
            await self.participant_repo.add_participant(
                room.id,
                "",
                ParticipantRole.GUEST,
                session_id=session_id,
                last_ping=now,
                commit=False,
            )

        session_id = await self._commit_unique(write)
        logger.info("Guest entered room %s", room.token)
        return session_id

    async def release(self, room: RoomResponse, session_id: str) -> bool:
        """Unbind a session; guest rows are removed since they are never reused."""
        participant = await self.participant_repo.get_by_session(session_id)
        if participant is None or participant.room_id != room.id:
            return False

        if participant.is_guest:
            await self.participant_repo.delete_by_session(session_id)
        else:
            await self.participant_repo.clear_session(session_id)
        return True

    async def resolve(self, session_id: Optional[str]) -> Optional[ParticipantResponse]:
        if not session_id:
            return None
        return await self.participant_repo.get_by_session(session_id)
