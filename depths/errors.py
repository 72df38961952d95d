"""Tick-level error taxonomy.

Every error a tick invocation can surface carries a machine-readable
``kind`` and the HTTP status the API layer answers with. Waiting for
submissions is not an error: the scheduler returns a ``WaitingOutcome``.
"""


class GameError(Exception):
    """Base for errors that abort a whole tick invocation."""

    kind = "internal"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"error": self.kind, "message": self.message}


class ValidationError(GameError):
    """Malformed request, rejected before any lookup."""

    kind = "validation"
    status_code = 400


class NotFoundError(GameError):
    kind = "not_found"
    status_code = 404


class NotActiveError(GameError):
    """Instance already completed or failed."""

    kind = "not_active"
    status_code = 409


class ConcurrencyConflict(GameError):
    """Another invocation advanced the tick first. Nothing was committed."""

    kind = "conflict"
    status_code = 409


class UnexpectedError(GameError):
    kind = "internal"
    status_code = 500


class TickTimeout(UnexpectedError):
    kind = "timeout"
