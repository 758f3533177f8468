"""Vote ledger model."""
from sqlalchemy import (
    Column,
    String,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
)
from datetime import datetime, UTC
import uuid

from backend.database import Base
from backend.models.base import get_uuid_column


class GameVote(Base):
    """One vote slot per (scenario, voter).

    Re-voting updates the row in place; rows are never deleted.
    """
    __tablename__ = "game_votes"

    vote_id = get_uuid_column(primary_key=True, default=uuid.uuid4)

    scenario_id = get_uuid_column(
        ForeignKey("game_scenarios.scenario_id", ondelete="CASCADE"),
        nullable=False
    )

    voter_name = Column(String(50), nullable=False)
    voter_canonical = Column(String(50), nullable=False)
    choice = Column(String(1), nullable=False)

    cast_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))

    __table_args__ = (
        UniqueConstraint("scenario_id", "voter_canonical", name="uq_game_votes_scenario_voter"),
        CheckConstraint("choice IN ('A', 'B')", name="ck_game_votes_choice"),
    )

    def __repr__(self):
        return f"<GameVote(scenario={self.scenario_id}, voter={self.voter_name}, choice={self.choice})>"
