"""Game session (lobby) model."""
from sqlalchemy import (
    Column,
    String,
    DateTime,
    Integer,
    Float,
    CheckConstraint,
)
from datetime import datetime, UTC
import uuid

from backend.database import Base
from backend.models.base import get_uuid_column, SessionStatus


class GameSession(Base):
    """One Mom vs Dad game instance.

    Holds the two role names, the admin PIN and the round counter. Rows are
    only mutated by the round controller and are never deleted.
    """
    __tablename__ = "game_sessions"

    # Primary key
    session_id = get_uuid_column(primary_key=True, default=uuid.uuid4)

    # Shareable code for joining
    session_code = Column(String(8), unique=True, nullable=False)

    # Shared admin secret
    admin_pin = Column(String(4), nullable=False)

    # The two roles guests vote between
    role_a_name = Column(String(50), nullable=False)
    role_b_name = Column(String(50), nullable=False)

    # Round tracking
    status = Column(String(20), nullable=False, default=SessionStatus.SETUP.value)
    # Possible values: 'setup', 'voting', 'revealed', 'complete'
    current_round = Column(Integer, nullable=False, default=0)
    total_rounds = Column(Integer, nullable=False, default=5)

    # Scenario generation settings
    theme = Column(String(20), nullable=False, default="general")
    intensity = Column(Float, nullable=False, default=0.5)

    # Lobby capacity including the admin; NULL means unlimited
    max_players = Column(Integer, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("current_round >= 0", name="ck_game_sessions_round_min"),
        CheckConstraint("current_round <= total_rounds", name="ck_game_sessions_round_max"),
        CheckConstraint("total_rounds BETWEEN 1 AND 10", name="ck_game_sessions_total_rounds"),
    )

    def __repr__(self):
        return f"<GameSession(id={self.session_id}, code={self.session_code}, status={self.status}, round={self.current_round}/{self.total_rounds})>"
