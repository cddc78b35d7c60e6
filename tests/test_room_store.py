from typing import Any, List, Tuple

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from signaling.events import EventBus, RoomEvent
from signaling.exceptions import ParticipantNotFoundError, RoomNotFoundError
from signaling.models.api.signaling import Delivery
from signaling.models.db.room_model import RoomModel
from signaling.models.enums import ParticipantRole, RoomKind
from signaling.repositories.participant_repository import ParticipantRepository
from signaling.services.message_broker import MessageBroker
from signaling.services.room_store import RoomStore
from signaling.tokens import ROOM_TOKEN_CHARS


def _record(bus: EventBus, *kinds: RoomEvent) -> List[Tuple[str, Any]]:
    received: List[Tuple[str, Any]] = []
    for kind in kinds:
        bus.subscribe(kind, lambda payload, kind=kind: received.append((kind.value, payload)))
    return received


class TestRoomStore:
    """Integration tests for RoomStore."""

    @pytest.fixture
    def events(self) -> EventBus:
        return EventBus()

    @pytest.fixture
    def store(self, test_db: AsyncSession, events: EventBus) -> RoomStore:
        return RoomStore(test_db, events)

    @pytest.mark.asyncio
    async def test_create_room_with_owner(self, store: RoomStore) -> None:
        room = await store.create_room(RoomKind.GROUP, "Standup", owner_id="alice")

        assert len(room.token) == 4
        assert set(room.token) <= set(ROOM_TOKEN_CHARS)
        owner = await store.get_participant(room, "alice")
        assert owner.role == ParticipantRole.OWNER
        assert owner.session_id is None

    @pytest.mark.asyncio
    async def test_create_room_regenerates_colliding_token(
        self, test_db: AsyncSession
    ) -> None:
        tokens = iter(["aaaa", "aaaa", "bbbb"])
        store = RoomStore(test_db, token_factory=lambda: next(tokens))

        first = await store.create_room(RoomKind.GROUP)
        second = await store.create_room(RoomKind.GROUP)

        assert first.token == "aaaa"
        assert second.token == "bbbb"

    @pytest.mark.asyncio
    async def test_create_room_gives_up_after_repeated_collisions(
        self, test_db: AsyncSession
    ) -> None:
        store = RoomStore(test_db, token_factory=lambda: "aaaa")
        await store.create_room(RoomKind.GROUP)

        with pytest.raises(RuntimeError):
            await store.create_room(RoomKind.GROUP)

    @pytest.mark.asyncio
    async def test_create_room_publishes_pre_and_post(
        self, store: RoomStore, events: EventBus
    ) -> None:
        received = _record(events, RoomEvent.PRE_CREATE_ROOM, RoomEvent.POST_CREATE_ROOM)

        room = await store.create_room(RoomKind.PUBLIC, "Lobby")

        assert [kind for kind, _ in received] == ["pre_create_room", "post_create_room"]
        assert received[1][1]["room"] == room

    @pytest.mark.asyncio
    async def test_set_name(self, store: RoomStore, events: EventBus) -> None:
        room = await store.create_room(RoomKind.GROUP, "Old")
        received = _record(events, RoomEvent.PRE_SET_NAME, RoomEvent.POST_SET_NAME)

        assert await store.set_name(room, "New")

        assert (await store.get_room_by_token(room.token)).name == "New"
        assert received[0][1]["old_name"] == "Old"
        assert received[0][1]["new_name"] == "New"

    @pytest.mark.asyncio
    async def test_set_name_of_one_to_one_room_fails(
        self, store: RoomStore, events: EventBus
    ) -> None:
        room = await store.create_room(RoomKind.ONE_TO_ONE, "Alice and Bob")
        received = _record(events, RoomEvent.PRE_SET_NAME)

        assert not await store.set_name(room, "Renamed")

        assert (await store.get_room_by_token(room.token)).name == "Alice and Bob"
        assert received == []

    @pytest.mark.asyncio
    async def test_set_same_name_is_a_noop(self, store: RoomStore) -> None:
        room = await store.create_room(RoomKind.ONE_TO_ONE, "Same")
        assert await store.set_name(room, "Same")

    @pytest.mark.asyncio
    async def test_change_public_to_group_kicks_uninvited(
        self, store: RoomStore, test_db: AsyncSession
    ) -> None:
        room = await store.create_room(RoomKind.PUBLIC, owner_id="alice")
        await store.add_user(room, "bob")
        await store.add_participants(room, ["carol"], ParticipantRole.USER_SELF_JOINED)
        await store.add_participants(room, ["", ""], ParticipantRole.GUEST)

        assert await store.change_type(room, RoomKind.GROUP)

        remaining = await ParticipantRepository(test_db).list_by_room(room.id)
        assert sorted(p.user_id for p in remaining) == ["alice", "bob"]
        assert (await store.get_room_by_token(room.token)).kind == RoomKind.GROUP

    @pytest.mark.asyncio
    async def test_change_group_to_public_keeps_everyone(
        self, store: RoomStore, test_db: AsyncSession
    ) -> None:
        room = await store.create_room(RoomKind.GROUP, owner_id="alice")
        await store.add_user(room, "bob")

        assert await store.change_type(room, RoomKind.PUBLIC)

        assert await ParticipantRepository(test_db).count_by_room(room.id) == 2

    @pytest.mark.asyncio
    async def test_change_type_rejections(self, store: RoomStore) -> None:
        one_to_one = await store.create_room(RoomKind.ONE_TO_ONE)
        group = await store.create_room(RoomKind.GROUP)

        assert not await store.change_type(one_to_one, RoomKind.GROUP)
        assert not await store.change_type(group, RoomKind.ONE_TO_ONE)
        assert not await store.change_type(group, "conference")
        # Unchanged kind succeeds without doing anything
        assert await store.change_type(group, RoomKind.GROUP)
        assert (await store.get_room_by_token(one_to_one.token)).kind == RoomKind.ONE_TO_ONE

    @pytest.mark.asyncio
    async def test_add_participants_skips_existing_users(self, store: RoomStore) -> None:
        room = await store.create_room(RoomKind.GROUP, owner_id="alice")

        added = await store.add_participants(room, ["alice", "bob"], ParticipantRole.USER)

        assert [p.user_id for p in added] == ["bob"]
        assert (await store.get_participant(room, "alice")).role == ParticipantRole.OWNER

    @pytest.mark.asyncio
    async def test_set_participant_role(self, store: RoomStore) -> None:
        room = await store.create_room(RoomKind.GROUP, owner_id="alice")
        await store.add_user(room, "bob")

        await store.set_participant_role(room, "bob", ParticipantRole.MODERATOR)

        assert (await store.get_participant(room, "bob")).role == ParticipantRole.MODERATOR
        with pytest.raises(ParticipantNotFoundError):
            await store.set_participant_role(room, "mallory", ParticipantRole.OWNER)

    @pytest.mark.asyncio
    async def test_remove_user(self, store: RoomStore, events: EventBus) -> None:
        room = await store.create_room(RoomKind.GROUP, owner_id="alice")
        await store.add_user(room, "bob")
        received = _record(events, RoomEvent.PRE_REMOVE_USER, RoomEvent.POST_REMOVE_USER)

        await store.remove_user(room, "bob")

        with pytest.raises(ParticipantNotFoundError):
            await store.get_participant(room, "bob")
        assert len(received) == 2

    @pytest.mark.asyncio
    async def test_get_participant_of_guest_fails(self, store: RoomStore) -> None:
        room = await store.create_room(RoomKind.PUBLIC)
        with pytest.raises(ParticipantNotFoundError):
            await store.get_participant(room, None)

    @pytest.mark.asyncio
    async def test_get_room_for_participant(self, store: RoomStore) -> None:
        group = await store.create_room(RoomKind.GROUP, owner_id="alice")
        public = await store.create_room(RoomKind.PUBLIC)

        assert (await store.get_room_for_participant(group.token, "alice")).id == group.id
        assert (await store.get_room_for_participant(public.token, None)).id == public.id
        assert (await store.get_room_for_participant(public.token, "bob")).id == public.id

        with pytest.raises(RoomNotFoundError):
            await store.get_room_for_participant(group.token, "bob")
        with pytest.raises(RoomNotFoundError):
            await store.get_room_for_participant(group.token, None)
        with pytest.raises(RoomNotFoundError):
            await store.get_room_for_participant("zzzz", "alice")

    @pytest.mark.asyncio
    async def test_get_room_for_session_holder(self, store: RoomStore) -> None:
        group = await store.create_room(RoomKind.GROUP)
        other = await store.create_room(RoomKind.GROUP)
        await store.add_participants(group, [""], ParticipantRole.GUEST, session_id="S1")

        room = await store.get_room_for_participant(group.token, None, "S1")

        assert room.id == group.id
        with pytest.raises(RoomNotFoundError):
            await store.get_room_for_participant(other.token, None, "S1")

    @pytest.mark.asyncio
    async def test_delete_room_removes_participants(
        self, store: RoomStore, test_db: AsyncSession
    ) -> None:
        room = await store.create_room(RoomKind.GROUP, owner_id="alice")
        await store.add_user(room, "bob")

        await store.delete_room(room)

        with pytest.raises(RoomNotFoundError):
            await store.get_room_by_token(room.token)
        assert await ParticipantRepository(test_db).count_by_room(room.id) == 0

    @pytest.mark.asyncio
    async def test_list_rooms_for_user(self, store: RoomStore) -> None:
        mine = await store.create_room(RoomKind.GROUP, owner_id="alice")
        await store.create_room(RoomKind.GROUP, owner_id="bob")

        rooms = await store.list_rooms_for_user("alice")

        assert [r.token for r in rooms] == [mine.token]

    @pytest.mark.asyncio
    async def test_fill_missing_tokens(self, store: RoomStore, test_db: AsyncSession) -> None:
        test_db.add(RoomModel(kind="group", token=None, name="Legacy"))
        await test_db.commit()

        assert await store.fill_missing_tokens() == 1
        assert await store.fill_missing_tokens() == 0

        rooms = await store.room_repo.list_without_token()
        assert rooms == []

    @pytest.mark.asyncio
    async def test_removed_rows_lose_their_queues(self, test_db: AsyncSession) -> None:
        broker = MessageBroker()
        store = RoomStore(test_db, broker=broker)
        repo = ParticipantRepository(test_db)
        room = await store.create_room(RoomKind.PUBLIC, owner_id="alice")
        await store.add_participants(room, ["bob"], ParticipantRole.USER, session_id="BOB")
        await repo.add_participant(room.id, "", ParticipantRole.GUEST, session_id="GUEST")
        await repo.assign_session(room.id, "alice", "ALICE", 0)
        await broker.publish(["ALICE", "BOB", "GUEST"], Delivery(type="message", data={}))

        await store.change_type(room, RoomKind.GROUP)
        assert broker.pending("GUEST") == 0
        assert broker.pending("BOB") == 1

        await store.remove_user(room, "bob")
        assert broker.pending("BOB") == 0
        assert broker.pending("ALICE") == 1

        await store.delete_room(room)
        assert broker.queue_count() == 0
