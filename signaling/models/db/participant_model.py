from sqlalchemy import Column, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import relationship

from signaling.database import Base


class ParticipantModel(Base):
    """SQLAlchemy model for participants table."""

    __tablename__ = "participants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_id = Column(
        Integer, ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Empty string marks a guest
    user_id = Column(String(255), nullable=False, default="", index=True)
    # NULL while not connected; unique across all rooms
    session_id = Column(String(255), nullable=True, unique=True)
    role = Column(String(20), nullable=False)
    last_ping = Column(Integer, nullable=False, default=0)

    # Relationships
    room = relationship("RoomModel", back_populates="participants")

    # Constraints (enforced by database CHECK constraints in the migration)
    # role IN ('owner', 'moderator', 'user', 'user_self_joined', 'guest')

    __table_args__ = (
        # A named user holds at most one row per room; guests ("") are exempt
        Index(
            "uq_participants_room_user",
            "room_id",
            "user_id",
            unique=True,
            postgresql_where=text("user_id <> ''"),
            sqlite_where=text("user_id <> ''"),
        ),
    )
