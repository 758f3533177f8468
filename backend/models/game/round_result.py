"""Materialized result of a revealed round."""
from sqlalchemy import (
    Column,
    String,
    Text,
    DateTime,
    ForeignKey,
    Integer,
    Boolean,
)
from datetime import datetime, UTC
import uuid

from backend.database import Base
from backend.models.base import get_uuid_column


class RoundResult(Base):
    """Vote counts, winner and commentary frozen at reveal time."""
    __tablename__ = "game_round_results"

    result_id = get_uuid_column(primary_key=True, default=uuid.uuid4)

    scenario_id = get_uuid_column(
        ForeignKey("game_scenarios.scenario_id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    session_id = get_uuid_column(
        ForeignKey("game_sessions.session_id", ondelete="CASCADE"),
        nullable=False
    )
    round_number = Column(Integer, nullable=False)

    votes_a = Column(Integer, nullable=False, default=0)
    votes_b = Column(Integer, nullable=False, default=0)
    winner = Column(String(1), nullable=False)
    is_tie = Column(Boolean, nullable=False, default=False)

    commentary = Column(Text, nullable=False, default="")
    particle_effect = Column(String(20), nullable=False, default="hearts")

    # Optional real answer given by the parents at reveal time
    actual_choice = Column(String(1), nullable=True)
    perception_gap = Column(Integer, nullable=True)

    revealed_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))

    def __repr__(self):
        return f"<RoundResult(round={self.round_number}, A={self.votes_a}, B={self.votes_b}, winner={self.winner})>"
