from typing import Any, List, Optional

from sqlalchemy import or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from signaling.models.api.rooms import RoomResponse
from signaling.models.db.participant_model import ParticipantModel
from signaling.models.db.room_model import RoomModel
from signaling.models.enums import RoomKind
from signaling.repositories.base_repository import BaseRepository


class RoomRepository(BaseRepository[RoomModel, RoomResponse]):
    """Repository for room operations."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, RoomModel)

    async def get_by_token(self, token: str) -> Optional[RoomResponse]:
        """Get a room by its public token."""
        if not token:
            return None
        query = select(self.model_class).where(self.model_class.token == token)
        result = await self.db.execute(query)
        db_model = result.scalar_one_or_none()
        return self._to_pydantic(db_model) if db_model else None

    async def list_for_user(self, user_id: str) -> List[RoomResponse]:
        """Get all rooms the user has a participant row in."""
        query = (
            select(self.model_class)
            .join(ParticipantModel, ParticipantModel.room_id == self.model_class.id)
            .where(ParticipantModel.user_id == user_id)
            .order_by(self.model_class.id)
        )
        result = await self.db.execute(query)
        db_models = result.scalars().all()
        return [self._to_pydantic(db_model) for db_model in db_models]

    async def list_without_token(self) -> List[RoomResponse]:
        """Get rooms whose token was never filled."""
        query = select(self.model_class).where(
            or_(self.model_class.token == "", self.model_class.token.is_(None))
        )
        result = await self.db.execute(query)
        return [self._to_pydantic(db_model) for db_model in result.scalars().all()]

    async def update_name(self, room_id: int, name: str) -> None:
        await self.db.execute(
            update(self.model_class)
            .where(self.model_class.id == room_id)
            .values(name=name)
        )
        await self.db.commit()

    async def update_kind(self, room_id: int, kind: RoomKind, commit: bool = True) -> None:
        await self.db.execute(
            update(self.model_class)
            .where(self.model_class.id == room_id)
            .values(kind=kind.value)
        )
        if commit:
            await self.db.commit()

    async def update_token(self, room_id: int, token: str) -> None:
        await self.db.execute(
            update(self.model_class)
            .where(self.model_class.id == room_id)
            .values(token=token)
        )
        await self.db.commit()

    def _to_pydantic(self, db_model: Any) -> RoomResponse:
        """Convert SQLAlchemy RoomModel to Pydantic RoomResponse."""
        return RoomResponse(
            id=db_model.id,
            kind=db_model.kind,
            token=db_model.token or "",
            name=db_model.name or "",
            created_at=db_model.created_at,
        )

    def _from_pydantic(self, pydantic_model: RoomResponse) -> RoomModel:
        """Convert Pydantic RoomResponse to SQLAlchemy RoomModel."""
        return RoomModel(
            id=pydantic_model.id,
            kind=pydantic_model.kind.value,
            token=pydantic_model.token or None,
            name=pydantic_model.name,
        )
