"""Game participant model."""
from sqlalchemy import (
    Column,
    String,
    DateTime,
    ForeignKey,
    Boolean,
    UniqueConstraint,
)
from datetime import datetime, UTC
import uuid

from backend.database import Base
from backend.models.base import get_uuid_column


class GameParticipant(Base):
    """A guest (or the admin) who joined a game session."""
    __tablename__ = "game_participants"

    # Primary key
    participant_id = get_uuid_column(primary_key=True, default=uuid.uuid4)

    # Foreign keys
    session_id = get_uuid_column(
        ForeignKey("game_sessions.session_id", ondelete="CASCADE"),
        nullable=False
    )

    display_name = Column(String(50), nullable=False)
    # Case-folded display name, unique within a session
    name_canonical = Column(String(50), nullable=False)

    is_admin = Column(Boolean, nullable=False, default=False)

    joined_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))

    __table_args__ = (
        UniqueConstraint("session_id", "name_canonical", name="uq_game_participants_session_name"),
    )

    def __repr__(self):
        return f"<GameParticipant(id={self.participant_id}, name={self.display_name}, admin={self.is_admin})>"
