"""Base utilities for SQLAlchemy models."""
from enum import Enum
import uuid
from sqlalchemy import Column, String
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.sql import sqltypes


class SessionStatus(str, Enum):
    """Session status enumeration for type safety."""
    SETUP = "setup"
    VOTING = "voting"
    REVEALED = "revealed"
    COMPLETE = "complete"


class VoteChoice(str, Enum):
    """The two options a guest can vote for."""
    A = "A"
    B = "B"


class ScenarioSource(str, Enum):
    """Where a round's scenario text came from."""
    AI = "ai"
    FALLBACK = "fallback"


# Statuses that still accept new participants
JOINABLE_STATUSES = (SessionStatus.SETUP.value, SessionStatus.VOTING.value)


class AdaptiveUUID(sqltypes.TypeDecorator):
    """UUID type stored natively on PostgreSQL and as 36-char strings elsewhere."""

    impl = sqltypes.String
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PGUUID(as_uuid=True))
        return dialect.type_descriptor(String(36))

    @staticmethod
    def _coerce_uuid(value):
        if value is None or isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))

    def process_bind_param(self, value, dialect):
        value = self._coerce_uuid(value)
        if value is None:
            return None
        if dialect.name == "postgresql":
            return value
        return str(value)

    def process_result_value(self, value, dialect):
        return self._coerce_uuid(value)


def get_uuid_column(*args, **kwargs):
    """Get UUID column type based on database dialect.

    Example:
        session_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
        foreign_id = get_uuid_column(ForeignKey("table.id"), nullable=True)
    """
    return Column(AdaptiveUUID(), *args, **kwargs)
