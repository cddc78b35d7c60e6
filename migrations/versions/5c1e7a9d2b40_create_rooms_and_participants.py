"""create rooms and participants

Revision ID: 5c1e7a9d2b40
Revises:
Create Date: 2026-10-19 10:12:03.415207

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '5c1e7a9d2b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'rooms',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('kind', sa.String(length=20), nullable=False),
        sa.Column('token', sa.String(length=64), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("kind IN ('one_to_one', 'group', 'public')", name='ck_rooms_kind'),
        sa.UniqueConstraint('token', name='uq_rooms_token'),
    )

    op.create_table(
        'participants',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('room_id', sa.Integer(), sa.ForeignKey('rooms.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('session_id', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('last_ping', sa.Integer(), nullable=False, server_default='0'),
        sa.CheckConstraint(
            "role IN ('owner', 'moderator', 'user', 'user_self_joined', 'guest')",
            name='ck_participants_role',
        ),
        sa.UniqueConstraint('session_id', name='uq_participants_session_id'),
    )

    op.create_index('ix_participants_room_id', 'participants', ['room_id'])
    op.create_index('ix_participants_user_id', 'participants', ['user_id'])
    # One row per named user and room; guests have an empty user_id
    op.create_index(
        'uq_participants_room_user',
        'participants',
        ['room_id', 'user_id'],
        unique=True,
        postgresql_where=sa.text("user_id <> ''"),
        sqlite_where=sa.text("user_id <> ''"),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('uq_participants_room_user', table_name='participants')
    op.drop_index('ix_participants_user_id', table_name='participants')
    op.drop_index('ix_participants_room_id', table_name='participants')
    op.drop_table('participants')
    op.drop_table('rooms')
