"""Datetime utility functions for timezone handling."""
from datetime import datetime, UTC
from typing import Optional


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (SQLite returns these) as UTC.

    >>> ensure_utc(datetime(2025, 1, 1, 12, 0, 0)).tzinfo == UTC
    True
    >>> ensure_utc(None) is None
    True
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)
