"""Base schemas shared by every game response."""
from pydantic import BaseModel, ConfigDict, model_serializer
from datetime import datetime, UTC

from backend.utils.datetime_helpers import ensure_utc


def serialize_datetime_utc(dt: datetime) -> str:
    """ISO 8601 with a ``Z`` suffix; naive values (SQLite) are treated as UTC."""
    return ensure_utc(dt).astimezone(UTC).isoformat().replace('+00:00', 'Z')


class BaseSchema(BaseModel):
    """Response base that renders nested datetimes as UTC strings."""

    model_config = ConfigDict(
        from_attributes=True,
    )

    @model_serializer(mode="wrap")
    def serialize_model(self, handler):
        def _convert(value):
            if isinstance(value, datetime):
                return serialize_datetime_utc(value)
            if isinstance(value, list):
                return [_convert(item) for item in value]
            if isinstance(value, dict):
                return {key: _convert(item) for key, item in value.items()}
            return value

        data = handler(self)
        return {key: _convert(value) for key, value in data.items()}


class ErrorResponse(BaseSchema):
    """Body returned for every game error."""
    detail: str
    code: str
