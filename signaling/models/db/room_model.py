from sqlalchemy import Column, DateTime, Integer, String, func
from sqlalchemy.orm import relationship

from signaling.database import Base


class RoomModel(Base):
    """SQLAlchemy model for rooms table."""

    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(String(20), nullable=False)
    # NULL until assigned; see RoomStore.fill_missing_tokens
    token = Column(String(64), nullable=True, unique=True)
    name = Column(String(255), nullable=False, default="")
    created_at = Column(DateTime(timezone=True), default=func.now())

    # Relationships
    participants = relationship(
        "ParticipantModel",
        back_populates="room",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    # Constraints (enforced by database CHECK constraints in the migration)
    # kind IN ('one_to_one', 'group', 'public')
