from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from signaling.models.api.participants import ParticipantResponse
from signaling.models.api.rooms import RoomResponse
from signaling.models.db.participant_model import ParticipantModel
from signaling.models.db.room_model import RoomModel
from signaling.models.enums import ParticipantRole, RoomKind
from signaling.repositories.base_repository import BaseRepository
from signaling.repositories.participant_repository import ParticipantRepository
from signaling.repositories.room_repository import RoomRepository


class TestBaseRepository:
    """Unit tests for BaseRepository functionality."""

    def test_base_repository_creation(self, mock_db: Any) -> None:
        """Test that BaseRepository can be instantiated."""
        repo: BaseRepository[RoomModel, RoomResponse] = BaseRepository(mock_db, RoomModel)
        assert repo.db is mock_db
        assert repo.model_class is RoomModel

    @pytest.mark.asyncio
    async def test_get_by_id_with_mock(self, mock_db: Any) -> None:
        """Test get_by_id method with mocked database."""
        repo = RoomRepository(mock_db)

        mock_db_model = MagicMock(spec=RoomModel)
        mock_db_model.id = 7
        mock_db_model.kind = "group"
        mock_db_model.token = "abcd"
        mock_db_model.name = "Standup"
        mock_db_model.created_at = None

        mock_result = MagicMock()
        mock_result.scalar_one_or_none.return_value = mock_db_model
        mock_db.execute.return_value = mock_result

        result = await repo.get_by_id(7)

        assert result is not None
        assert result.id == 7
        assert result.kind == RoomKind.GROUP
        mock_db.execute.assert_called_once()

    @pytest.mark.asyncio
    async def test_get_by_id_not_found(self, mock_db: Any) -> None:
        """Test get_by_id when record is not found."""
        repo = RoomRepository(mock_db)

        mock_result = MagicMock()
        mock_result.scalar_one_or_none.return_value = None
        mock_db.execute.return_value = mock_result

        assert await repo.get_by_id(1) is None

    @pytest.mark.asyncio
    async def test_create_commits_and_refreshes(self, mock_db: Any) -> None:
        repo = RoomRepository(mock_db)
        room = RoomResponse(id=3, kind=RoomKind.PUBLIC, token="wxyz", name="")

        result = await repo.create(room)

        mock_db.add.assert_called_once()
        mock_db.commit.assert_called_once()
        mock_db.refresh.assert_called_once()
        assert result.token == "wxyz"

    @pytest.mark.asyncio
    async def test_conversion_not_implemented(self, mock_db: Any) -> None:
        repo: BaseRepository[RoomModel, RoomResponse] = BaseRepository(mock_db, RoomModel)
        with pytest.raises(NotImplementedError):
            repo._to_pydantic(MagicMock())


class TestParticipantRepositoryUnit:
    """Unit tests for ParticipantRepository with a mocked session."""

    def test_to_pydantic_defaults(self, mock_db: Any) -> None:
        repo = ParticipantRepository(mock_db)
        db_model = MagicMock(spec=ParticipantModel)
        db_model.id = 1
        db_model.room_id = 2
        db_model.user_id = None
        db_model.role = "guest"
        db_model.session_id = None
        db_model.last_ping = None

        participant = repo._to_pydantic(db_model)

        assert participant.user_id == ""
        assert participant.is_guest
        assert participant.last_ping == 0

    @pytest.mark.asyncio
    async def test_add_participant_without_commit_only_flushes(self, mock_db: Any) -> None:
        repo = ParticipantRepository(mock_db)

        participant = await repo.add_participant(
            1, "alice", ParticipantRole.USER, session_id="S", commit=False
        )

        mock_db.add.assert_called_once()
        mock_db.flush.assert_called_once()
        mock_db.commit.assert_not_called()
        assert participant.session_id == "S"

    @pytest.mark.asyncio
    async def test_add_participant_with_commit_uses_create(self, mock_db: Any) -> None:
        repo = ParticipantRepository(mock_db)
        created = ParticipantResponse(room_id=1, user_id="bob", role=ParticipantRole.USER)

        with patch.object(repo, "create", return_value=created) as mock_create:
            result = await repo.add_participant(1, "bob", ParticipantRole.USER)

        mock_create.assert_called_once()
        assert result is created

    @pytest.mark.asyncio
    async def test_get_by_session_empty(self, mock_db: Any) -> None:
        repo = ParticipantRepository(mock_db)
        assert await repo.get_by_session("") is None
        mock_db.execute.assert_not_called()


class TestRepositoriesIntegration:
    """Integration tests against an in-memory SQLite database."""

    async def _room(self, db: AsyncSession, token: str = "abcd", kind=RoomKind.GROUP) -> RoomResponse:
        return await RoomRepository(db).create(RoomResponse(kind=kind, token=token, name=""))

    @pytest.mark.asyncio
    async def test_room_token_is_unique(self, test_db: AsyncSession) -> None:
        await self._room(test_db, "abcd")
        with pytest.raises(IntegrityError):
            await self._room(test_db, "abcd")
        await test_db.rollback()

    @pytest.mark.asyncio
    async def test_session_id_is_unique(self, test_db: AsyncSession) -> None:
        room = await self._room(test_db)
        repo = ParticipantRepository(test_db)
        await repo.add_participant(room.id, "", ParticipantRole.GUEST, session_id="S")

        with pytest.raises(IntegrityError):
            await repo.add_participant(room.id, "", ParticipantRole.GUEST, session_id="S")
        await test_db.rollback()

    @pytest.mark.asyncio
    async def test_one_row_per_user_but_many_guests(self, test_db: AsyncSession) -> None:
        room = await self._room(test_db)
        repo = ParticipantRepository(test_db)

        await repo.add_participant(room.id, "", ParticipantRole.GUEST)
        await repo.add_participant(room.id, "", ParticipantRole.GUEST)
        await repo.add_participant(room.id, "alice", ParticipantRole.OWNER)
        assert await repo.count_by_room(room.id) == 3

        with pytest.raises(IntegrityError):
            await repo.add_participant(room.id, "alice", ParticipantRole.USER)
        await test_db.rollback()

    @pytest.mark.asyncio
    async def test_delete_stale_guests_threshold_is_inclusive(
        self, test_db: AsyncSession
    ) -> None:
        room = await self._room(test_db)
        repo = ParticipantRepository(test_db)
        await repo.add_participant(room.id, "", ParticipantRole.GUEST, session_id="A", last_ping=100)
        await repo.add_participant(room.id, "", ParticipantRole.GUEST, session_id="B", last_ping=101)
        await repo.add_participant(room.id, "alice", ParticipantRole.USER, last_ping=0)

        removed = await repo.delete_stale_guests(100, room.id)

        assert removed == ["A"]
        remaining = {p.session_id for p in await repo.list_by_room(room.id)}
        assert remaining == {"B", None}

    @pytest.mark.asyncio
    async def test_list_by_room_filters_by_last_ping(self, test_db: AsyncSession) -> None:
        room = await self._room(test_db)
        repo = ParticipantRepository(test_db)
        await repo.add_participant(room.id, "alice", ParticipantRole.USER, last_ping=50)
        await repo.add_participant(room.id, "bob", ParticipantRole.USER, last_ping=10)

        recent = await repo.list_by_room(room.id, last_ping_after=20)

        assert [p.user_id for p in recent] == ["alice"]
        assert await repo.count_by_room(room.id, last_ping_after=20) == 1

    @pytest.mark.asyncio
    async def test_list_for_user(self, test_db: AsyncSession) -> None:
        first = await self._room(test_db, "aaaa")
        second = await self._room(test_db, "bbbb")
        await self._room(test_db, "cccc")
        repo = ParticipantRepository(test_db)
        await repo.add_participant(first.id, "alice", ParticipantRole.OWNER)
        await repo.add_participant(second.id, "alice", ParticipantRole.USER)

        rooms = await RoomRepository(test_db).list_for_user("alice")

        assert [r.token for r in rooms] == ["aaaa", "bbbb"]
