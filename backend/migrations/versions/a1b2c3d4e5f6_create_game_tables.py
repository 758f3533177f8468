"""create game tables

Tables for the Mom vs Dad game:
- game_sessions: one row per game, round counter and status
- game_participants: admin and guests per session
- game_scenarios: one scenario per (session, round)
- game_votes: vote ledger, one row per (scenario, voter)
- game_round_results: tally frozen at reveal

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from backend.migrations.util import get_uuid_type, get_timestamp_default, get_boolean_default


# revision identifiers, used by Alembic.
revision: str = 'a1b2c3d4e5f6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create game tables."""
    uuid = get_uuid_type()
    timestamp_default = get_timestamp_default()

    op.create_table(
        'game_sessions',
        sa.Column('session_id', uuid, primary_key=True),
        sa.Column('session_code', sa.String(length=8), nullable=False),
        sa.Column('admin_pin', sa.String(length=4), nullable=False),
        sa.Column('role_a_name', sa.String(length=50), nullable=False),
        sa.Column('role_b_name', sa.String(length=50), nullable=False),

        sa.Column('status', sa.String(length=20), nullable=False, server_default='setup'),
        sa.Column('current_round', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_rounds', sa.Integer(), nullable=False, server_default='5'),

        sa.Column('theme', sa.String(length=20), nullable=False, server_default='general'),
        sa.Column('intensity', sa.Float(), nullable=False, server_default='0.5'),

        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=timestamp_default),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=timestamp_default),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),

        sa.UniqueConstraint('session_code', name='uq_game_sessions_code'),
        sa.CheckConstraint('current_round >= 0', name='ck_game_sessions_round_min'),
        sa.CheckConstraint('current_round <= total_rounds', name='ck_game_sessions_round_max'),
        sa.CheckConstraint('total_rounds BETWEEN 1 AND 10', name='ck_game_sessions_total_rounds'),
    )
    op.create_index('idx_game_sessions_status_updated', 'game_sessions', ['status', 'updated_at'])

    op.create_table(
        'game_participants',
        sa.Column('participant_id', uuid, primary_key=True),
        sa.Column('session_id', uuid, sa.ForeignKey('game_sessions.session_id', ondelete='CASCADE'), nullable=False),
        sa.Column('display_name', sa.String(length=50), nullable=False),
        sa.Column('name_canonical', sa.String(length=50), nullable=False),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=get_boolean_default(False)),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False, server_default=timestamp_default),
        sa.UniqueConstraint('session_id', 'name_canonical', name='uq_game_participants_session_name'),
    )

    op.create_table(
        'game_scenarios',
        sa.Column('scenario_id', uuid, primary_key=True),
        sa.Column('session_id', uuid, sa.ForeignKey('game_sessions.session_id', ondelete='CASCADE'), nullable=False),
        sa.Column('round_number', sa.Integer(), nullable=False),
        sa.Column('prompt_text', sa.Text(), nullable=False),
        sa.Column('option_a', sa.Text(), nullable=False),
        sa.Column('option_b', sa.Text(), nullable=False),
        sa.Column('intensity', sa.Float(), nullable=False, server_default='0.5'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=get_boolean_default(False)),
        sa.Column('source', sa.String(length=10), nullable=False, server_default='fallback'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=timestamp_default),
        sa.UniqueConstraint('session_id', 'round_number', name='uq_game_scenarios_session_round'),
    )

    op.create_table(
        'game_votes',
        sa.Column('vote_id', uuid, primary_key=True),
        sa.Column('scenario_id', uuid, sa.ForeignKey('game_scenarios.scenario_id', ondelete='CASCADE'), nullable=False),
        sa.Column('voter_name', sa.String(length=50), nullable=False),
        sa.Column('voter_canonical', sa.String(length=50), nullable=False),
        sa.Column('choice', sa.String(length=1), nullable=False),
        sa.Column('cast_at', sa.DateTime(timezone=True), nullable=False, server_default=timestamp_default),
        sa.UniqueConstraint('scenario_id', 'voter_canonical', name='uq_game_votes_scenario_voter'),
        sa.CheckConstraint("choice IN ('A', 'B')", name='ck_game_votes_choice'),
    )

    op.create_table(
        'game_round_results',
        sa.Column('result_id', uuid, primary_key=True),
        sa.Column('scenario_id', uuid, sa.ForeignKey('game_scenarios.scenario_id', ondelete='CASCADE'), nullable=False),
        sa.Column('session_id', uuid, sa.ForeignKey('game_sessions.session_id', ondelete='CASCADE'), nullable=False),
        sa.Column('round_number', sa.Integer(), nullable=False),
        sa.Column('votes_a', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('votes_b', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('winner', sa.String(length=1), nullable=False),
        sa.Column('is_tie', sa.Boolean(), nullable=False, server_default=get_boolean_default(False)),
        sa.Column('commentary', sa.Text(), nullable=False, server_default=''),
        sa.Column('particle_effect', sa.String(length=20), nullable=False, server_default='hearts'),
        sa.Column('actual_choice', sa.String(length=1), nullable=True),
        sa.Column('perception_gap', sa.Integer(), nullable=True),
        sa.Column('revealed_at', sa.DateTime(timezone=True), nullable=False, server_default=timestamp_default),
        sa.UniqueConstraint('scenario_id', name='uq_game_round_results_scenario'),
    )
    op.create_index('idx_game_round_results_session', 'game_round_results', ['session_id', 'round_number'])


def downgrade() -> None:
    """Drop game tables."""
    op.drop_index('idx_game_round_results_session', table_name='game_round_results')
    op.drop_table('game_round_results')
    op.drop_table('game_votes')
    op.drop_table('game_scenarios')
    op.drop_table('game_participants')
    op.drop_index('idx_game_sessions_status_updated', table_name='game_sessions')
    op.drop_table('game_sessions')
