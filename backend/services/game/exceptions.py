"""Error taxonomy for the Mom vs Dad game.

Every error carries the HTTP status the API layer maps it to and a short
machine-readable ``code`` that clients switch on.
"""


class GameError(Exception):
    """Base exception for game errors."""

    status_code = 400
    code = "game_error"

    def __init__(self, message: str = "", *, code: str | None = None):
        super().__init__(message or self.__class__.__doc__)
        if code:
            self.code = code

    @property
    def message(self) -> str:
        return str(self)


class ValidationError(GameError):
    """Request input has the wrong shape or length."""
    status_code = 400
    code = "validation_error"


class NotFoundError(GameError):
    """Session, scenario or participant does not exist."""
    status_code = 404
    code = "not_found"


class AuthError(GameError):
    """Admin PIN did not match."""
    status_code = 403
    code = "invalid_admin_pin"


class ConflictError(GameError):
    """Duplicate name or session code collision."""
    status_code = 409
    code = "conflict"


class InvalidStateError(GameError):
    """Action is not legal in the session's current status or round.

    Clients treat this as "your view is stale" and refetch the session.
    """
    status_code = 409
    code = "stale_state"


class UpstreamError(GameError):
    """The AI text service failed. Always absorbed by a fallback."""
    status_code = 502
    code = "upstream_error"


ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (ValidationError, NotFoundError, AuthError, ConflictError, InvalidStateError, UpstreamError)
}
