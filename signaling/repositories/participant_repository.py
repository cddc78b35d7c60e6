from typing import Any, Iterable, List, Optional

from sqlalchemy import delete, func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from signaling.models.api.participants import ParticipantResponse
from signaling.models.db.participant_model import ParticipantModel
from signaling.models.enums import ParticipantRole
from signaling.repositories.base_repository import BaseRepository


class ParticipantRepository(BaseRepository[ParticipantModel, ParticipantResponse]):
    """Repository for participant operations.

    The bulk statements take a ``commit`` flag so that services can group
    several of them into one transaction.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(db, ParticipantModel)

    async def get(self, room_id: int, user_id: str) -> Optional[ParticipantResponse]:
        """Get the row of a named user in a room."""
        query = select(self.model_class).where(
            self.model_class.room_id == room_id,
            self.model_class.user_id == user_id,
        )
        result = await self.db.execute(query)
        db_model = result.scalars().first()
        return self._to_pydantic(db_model) if db_model else None

    async def get_by_session(self, session_id: str) -> Optional[ParticipantResponse]:
        """Get the row currently bound to a session."""
        if not session_id:
            return None
        query = select(self.model_class).where(
            self.model_class.session_id == session_id
        )
        result = await self.db.execute(query)
        db_model = result.scalar_one_or_none()
        return self._to_pydantic(db_model) if db_model else None

    async def list_by_room(
        self, room_id: int, last_ping_after: int = 0
    ) -> List[ParticipantResponse]:
        """Get the participants of a room, optionally only recently pinged ones."""
        query = select(self.model_class).where(self.model_class.room_id == room_id)
        if last_ping_after > 0:
            query = query.where(self.model_class.last_ping > last_ping_after)
        query = query.order_by(self.model_class.id)
        result = await self.db.execute(query)
        return [self._to_pydantic(db_model) for db_model in result.scalars().all()]

    async def count_by_room(self, room_id: int, last_ping_after: int = 0) -> int:
        query = (
            select(func.count())
            .select_from(self.model_class)
            .where(self.model_class.room_id == room_id)
        )
        if last_ping_after > 0:
            query = query.where(self.model_class.last_ping > last_ping_after)
        result = await self.db.execute(query)
        return int(result.scalar() or 0)

    async def add_participant(
        self,
        room_id: int,
        user_id: str,
        role: ParticipantRole,
        session_id: Optional[str] = None,
        last_ping: int = 0,
        commit: bool = True,
    ) -> ParticipantResponse:
        """Insert a participant row.

        With ``commit=False`` the row is only flushed, so constraint violations
        surface immediately while the transaction stays open.
        """
        new_participant = ParticipantResponse(
            room_id=room_id,
            user_id=user_id,
            role=role,
            session_id=session_id,
            last_ping=last_ping,
        )
        if commit:
            return await self.create(new_participant)

        db_model = self._from_pydantic(new_participant)
        self.db.add(db_model)
        await self.db.flush()
        return self._to_pydantic(db_model)

    async def set_role(self, room_id: int, user_id: str, role: ParticipantRole) -> int:
        result = await self.db.execute(
            update(self.model_class)
            .where(
                self.model_class.room_id == room_id,
                self.model_class.user_id == user_id,
            )
            .values(role=role.value)
        )
        await self.db.commit()
        return result.rowcount

    async def assign_session(
        self,
        room_id: int,
        user_id: str,
        session_id: str,
        last_ping: int,
        commit: bool = True,
    ) -> int:
        """Bind a session to the user's row; returns the number of rows updated."""
        result = await self.db.execute(
            update(self.model_class)
            .where(
                self.model_class.room_id == room_id,
                self.model_class.user_id == user_id,
            )
            .values(session_id=session_id, last_ping=last_ping)
        )
        if commit:
            await self.db.commit()
        return result.rowcount

    async def clear_sessions_elsewhere(
        self, user_id: str, room_id: int, commit: bool = True
    ) -> List[str]:
        """Unbind the user's sessions in every room but ``room_id``.

        Returns the session ids that were unbound.
        """
        conditions = (
            self.model_class.user_id == user_id,
            self.model_class.room_id != room_id,
            self.model_class.session_id.is_not(None),
        )
        result = await self.db.execute(
            select(self.model_class.session_id).where(*conditions)
        )
        cleared = list(result.scalars().all())
        if cleared:
            await self.db.execute(
                update(self.model_class).where(*conditions).values(session_id=None)
            )
        if commit:
            await self.db.commit()
        return cleared

    async def clear_session(self, session_id: str) -> int:
        result = await self.db.execute(
            update(self.model_class)
            .where(self.model_class.session_id == session_id)
            .values(session_id=None)
        )
        await self.db.commit()
        return result.rowcount

    async def ping(
        self, room_id: int, user_id: str, session_id: str, timestamp: int
    ) -> int:
        """Refresh last_ping of the row matching room, user and session."""
        result = await self.db.execute(
            update(self.model_class)
            .where(
                self.model_class.room_id == room_id,
                self.model_class.user_id == user_id,
                self.model_class.session_id == session_id,
            )
            .values(last_ping=timestamp)
        )
        await self.db.commit()
        return result.rowcount

    async def _delete_returning_sessions(self, *conditions: Any) -> List[Optional[str]]:
        """Delete matching rows; returns the session id of every deleted row."""
        result = await self.db.execute(
            delete(self.model_class)
            .where(*conditions)
            .returning(self.model_class.session_id)
        )
        return list(result.scalars().all())

    async def delete_user(self, room_id: int, user_id: str) -> List[Optional[str]]:
        deleted = await self._delete_returning_sessions(
            self.model_class.room_id == room_id,
            self.model_class.user_id == user_id,
        )
        await self.db.commit()
        return deleted

    async def delete_by_session(self, session_id: str) -> int:
        result = await self.db.execute(
            delete(self.model_class).where(self.model_class.session_id == session_id)
        )
        await self.db.commit()
        return result.rowcount

    async def delete_by_room(
        self, room_id: int, commit: bool = True
    ) -> List[Optional[str]]:
        deleted = await self._delete_returning_sessions(
            self.model_class.room_id == room_id
        )
        if commit:
            await self.db.commit()
        return deleted

    async def delete_by_roles(
        self, room_id: int, roles: Iterable[ParticipantRole], commit: bool = True
    ) -> List[Optional[str]]:
        deleted = await self._delete_returning_sessions(
            self.model_class.room_id == room_id,
            self.model_class.role.in_([role.value for role in roles]),
        )
        if commit:
            await self.db.commit()
        return deleted

    async def delete_stale_guests(
        self, last_ping_until: int, room_id: Optional[int] = None
    ) -> List[Optional[str]]:
        """Delete guest rows whose last ping is at or before the threshold."""
        conditions = [
            self.model_class.user_id == "",
            self.model_class.last_ping <= last_ping_until,
        ]
        if room_id is not None:
            conditions.append(self.model_class.room_id == room_id)
        deleted = await self._delete_returning_sessions(*conditions)
        await self.db.commit()
        return deleted

    def _to_pydantic(self, db_model: Any) -> ParticipantResponse:
        """Convert SQLAlchemy ParticipantModel to Pydantic ParticipantResponse."""
        return ParticipantResponse(
            id=db_model.id,
            room_id=db_model.room_id,
            user_id=db_model.user_id or "",
            role=db_model.role,
            session_id=db_model.session_id,
            last_ping=db_model.last_ping or 0,
        )

    def _from_pydantic(self, pydantic_model: ParticipantResponse) -> ParticipantModel:
        """Convert Pydantic ParticipantResponse to SQLAlchemy ParticipantModel."""
        return ParticipantModel(
            id=pydantic_model.id,
            room_id=pydantic_model.room_id,
            user_id=pydantic_model.user_id,
            role=pydantic_model.role.value,
            session_id=pydantic_model.session_id,
            last_ping=pydantic_model.last_ping,
        )
