"""Dialect helpers for Alembic migrations."""
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from alembic import op


def _dialect_name() -> str:
    return op.get_bind().dialect.name


def get_uuid_type():
    """Native UUID on PostgreSQL, String(36) elsewhere (matches AdaptiveUUID)."""
    if _dialect_name() == 'postgresql':
        return UUID(as_uuid=True)
    return sa.String(length=36)


def get_timestamp_default():
    """NOW() on PostgreSQL, CURRENT_TIMESTAMP elsewhere."""
    if _dialect_name() == 'postgresql':
        return sa.text('NOW()')
    return sa.text('CURRENT_TIMESTAMP')


def get_boolean_default(value: bool):
    """Boolean server default that both PostgreSQL and SQLite accept."""
    if _dialect_name() == 'postgresql':
        return sa.text('true' if value else 'false')
    return sa.text('1' if value else '0')
