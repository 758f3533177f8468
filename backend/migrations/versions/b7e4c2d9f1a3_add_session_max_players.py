"""add session max_players

Lobby capacity per session. Existing sessions stay unlimited (NULL).

Revision ID: b7e4c2d9f1a3
Revises: a1b2c3d4e5f6
Create Date: 2026-10-18 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'b7e4c2d9f1a3'
down_revision: Union[str, None] = 'a1b2c3d4e5f6'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Add game_sessions.max_players."""
    with op.batch_alter_table('game_sessions') as batch_op:
        batch_op.add_column(sa.Column('max_players', sa.Integer(), nullable=True))


def downgrade() -> None:
    """Drop game_sessions.max_players."""
    with op.batch_alter_table('game_sessions') as batch_op:
        batch_op.drop_column('max_players')
