import logging
from typing import Callable, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from signaling.events import EventBus, RoomEvent
from signaling.exceptions import ParticipantNotFoundError, RoomNotFoundError
from signaling.models.api.participants import ParticipantResponse
from signaling.models.api.rooms import RoomResponse
from signaling.models.enums import UNINVITED_ROLES, ParticipantRole, RoomKind
from signaling.repositories.participant_repository import ParticipantRepository
from signaling.repositories.room_repository import RoomRepository
from signaling.services.message_broker import MessageBroker
from signaling.tokens import generate_room_token

logger = logging.getLogger(__name__)

TOKEN_ATTEMPTS = 10


class RoomStore:
    """Durable record of rooms and their participants.

    Every mutation is published on the event bus twice, as ``pre_*`` before
    the write and ``post_*`` after it.
    """

    def __init__(
        self,
        db: AsyncSession,
        events: Optional[EventBus] = None,
        token_entropy: int = 4,
        token_factory: Optional[Callable[[], str]] = None,
        broker: Optional[MessageBroker] = None,
    ):
        self.db = db
        self.events = events or EventBus()
        self.broker = broker
        self.room_repo = RoomRepository(db)
        self.participant_repo = ParticipantRepository(db)
        self._token_factory = token_factory or (
            lambda: generate_room_token(token_entropy)
        )

    async def _discard(self, session_ids: List[Optional[str]]) -> None:
        if self.broker is not None:
            await self.broker.discard_all(session_ids)

    async def create_room(
        self, kind: RoomKind, name: str = "", owner_id: Optional[str] = None
    ) -> RoomResponse:
        """Create a room with a fresh unique token, optionally with its owner."""
        await self.events.publish(
            RoomEvent.PRE_CREATE_ROOM,
            {"kind": kind, "name": name, "owner_id": owner_id},
        )

        room: Optional[RoomResponse] = None
        for _ in range(TOKEN_ATTEMPTS):
            candidate = RoomResponse(kind=kind, token=self._token_factory(), name=name)
            try:
                room = await self.room_repo.create(candidate)
                break
            except IntegrityError:
                await self.room_repo.rollback()
                logger.debug("Room token collision, regenerating")
        if room is None:
            raise RuntimeError("Could not allocate a unique room token")

        if owner_id:
            await self.add_participants(room, [owner_id], ParticipantRole.OWNER)

        logger.info("Created %s room %s", kind.value, room.token)
        await self.events.publish(RoomEvent.POST_CREATE_ROOM, {"room": room})
        return room

    async def delete_room(self, room: RoomResponse) -> None:
        """Delete a room together with all of its participants."""
        await self.events.publish(RoomEvent.PRE_DELETE_ROOM, {"room": room})
        sessions = await self.participant_repo.delete_by_room(room.id, commit=False)
        await self.room_repo.delete(room.id)
        await self._discard(sessions)
        logger.info("Deleted room %s", room.token)
        await self.events.publish(RoomEvent.POST_DELETE_ROOM, {"room": room})

    async def set_name(self, room: RoomResponse, new_name: str) -> bool:
        """Rename a room; one-to-one rooms cannot be renamed."""
        old_name = room.name
        if new_name == old_name:
            return True

        if room.kind == RoomKind.ONE_TO_ONE:
            return False

        event = {"room": room, "new_name": new_name, "old_name": old_name}
        await self.events.publish(RoomEvent.PRE_SET_NAME, event)
        await self.room_repo.update_name(room.id, new_name)
        room.name = new_name
        await self.events.publish(RoomEvent.POST_SET_NAME, event)
        return True

    async def change_type(self, room: RoomResponse, new_kind: RoomKind) -> bool:
        """Change the kind of a room.

        Only group and public are valid targets and one-to-one rooms keep
        their kind. Leaving the public kind kicks guests and self-joined users.
        """
        try:
            new_kind = RoomKind(new_kind)
        except ValueError:
            return False

        if new_kind == room.kind:
            return True

        if new_kind not in (RoomKind.GROUP, RoomKind.PUBLIC):
            return False

        if room.kind == RoomKind.ONE_TO_ONE:
            return False

        old_kind = room.kind
        event = {"room": room, "new_kind": new_kind, "old_kind": old_kind}
        await self.events.publish(RoomEvent.PRE_CHANGE_TYPE, event)

        await self.room_repo.update_kind(room.id, new_kind, commit=False)
        removed: List[Optional[str]] = []
        if old_kind == RoomKind.PUBLIC:
            removed = await self.participant_repo.delete_by_roles(
                room.id, UNINVITED_ROLES, commit=False
            )
            logger.info(
                "Removed %d uninvited participants from %s", len(removed), room.token
            )
        await self.room_repo.commit()
        await self._discard(removed)

        room.kind = new_kind
        await self.events.publish(RoomEvent.POST_CHANGE_TYPE, event)
        return True

    async def add_user(self, room: RoomResponse, user_id: str) -> None:
        await self.add_participants(room, [user_id], ParticipantRole.USER)

    async def add_participants(
        self,
        room: RoomResponse,
        user_ids: Sequence[str],
        role: ParticipantRole,
        session_id: Optional[str] = None,
    ) -> List[ParticipantResponse]:
        """Add participant rows; users that already have a row are skipped."""
        event = {
            "room": room,
            "participants": list(user_ids),
            "role": role,
            "session_id": session_id,
        }
        await self.events.publish(RoomEvent.PRE_ADD_PARTICIPANTS, event)

        added = []
        for user_id in user_ids:
            if user_id and await self.participant_repo.get(room.id, user_id):
                continue
            added.append(
                await self.participant_repo.add_participant(
                    room.id, user_id, role, session_id=session_id
                )
            )

        await self.events.publish(RoomEvent.POST_ADD_PARTICIPANTS, event)
        return added

    async def set_participant_role(
        self, room: RoomResponse, user_id: str, role: ParticipantRole
    ) -> None:
        updated = await self.participant_repo.set_role(room.id, user_id, role)
        if not updated:
            raise ParticipantNotFoundError(f"{user_id} is not a participant")

    async def remove_user(self, room: RoomResponse, user_id: str) -> None:
        event = {"room": room, "user_id": user_id}
        await self.events.publish(RoomEvent.PRE_REMOVE_USER, event)
        await self._discard(await self.participant_repo.delete_user(room.id, user_id))
        await self.events.publish(RoomEvent.POST_REMOVE_USER, event)

    async def get_participant(
        self, room: RoomResponse, user_id: Optional[str]
    ) -> ParticipantResponse:
        if not user_id:
            raise ParticipantNotFoundError("Not a user")

        participant = await self.participant_repo.get(room.id, user_id)
        if participant is None:
            raise ParticipantNotFoundError(f"{user_id} is not a participant")
        return participant

    async def get_room_by_token(self, token: str) -> RoomResponse:
        room = await self.room_repo.get_by_token(token)
        if room is None:
            raise RoomNotFoundError(token)
        return room

    async def get_room_for_participant(
        self,
        token: str,
        user_id: Optional[str],
        session_id: Optional[str] = None,
    ) -> RoomResponse:
        """Resolve a room the caller may access.

        Access is granted to users with a participant row, to the holder of a
        session bound in the room, and to anyone for public rooms.
        """
        room = await self.get_room_by_token(token)

        if user_id and await self.participant_repo.get(room.id, user_id):
            return room

        if session_id:
            holder = await self.participant_repo.get_by_session(session_id)
            if holder is not None and holder.room_id == room.id:
                return room

        if room.kind == RoomKind.PUBLIC:
            return room

        raise RoomNotFoundError(token)

    async def list_rooms_for_user(self, user_id: str) -> List[RoomResponse]:
        return await self.room_repo.list_for_user(user_id)

    async def fill_missing_tokens(self) -> int:
        """Assign tokens to rooms that were created without one."""
        rooms = await self.room_repo.list_without_token()
        for room in rooms:
            for _ in range(TOKEN_ATTEMPTS):
                try:
                    await self.room_repo.update_token(room.id, self._token_factory())
                    break
                except IntegrityError:
                    await self.room_repo.rollback()
            else:
                raise RuntimeError(f"Could not allocate a token for room {room.id}")
        if rooms:
            logger.info("Filled tokens for %d rooms", len(rooms))
        return len(rooms)
