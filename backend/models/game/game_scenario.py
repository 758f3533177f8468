"""Game scenario model (one per round)."""
from sqlalchemy import (
    Column,
    String,
    Text,
    DateTime,
    ForeignKey,
    Integer,
    Float,
    Boolean,
    UniqueConstraint,
)
from datetime import datetime, UTC
import uuid

from backend.database import Base
from backend.models.base import get_uuid_column, ScenarioSource


class GameScenario(Base):
    """Prompt and the two options for one round of a session.

    Generated once when the game starts and immutable afterwards, except for
    the ``is_active`` flag the round controller toggles.
    """
    __tablename__ = "game_scenarios"

    scenario_id = get_uuid_column(primary_key=True, default=uuid.uuid4)

    session_id = get_uuid_column(
        ForeignKey("game_sessions.session_id", ondelete="CASCADE"),
        nullable=False
    )
    round_number = Column(Integer, nullable=False)

    prompt_text = Column(Text, nullable=False)
    option_a = Column(Text, nullable=False)
    option_b = Column(Text, nullable=False)
    intensity = Column(Float, nullable=False, default=0.5)

    is_active = Column(Boolean, nullable=False, default=False)
    source = Column(String(10), nullable=False, default=ScenarioSource.FALLBACK.value)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))

    __table_args__ = (
        UniqueConstraint("session_id", "round_number", name="uq_game_scenarios_session_round"),
    )

    def __repr__(self):
        return f"<GameScenario(id={self.scenario_id}, round={self.round_number}, active={self.is_active})>"
