"""Domain errors raised by the pomodoro engine.

Each class carries the error code and HTTP status the API layer renders.
"""

from __future__ import annotations


class PomodoroError(Exception):
    code = 'INTERNAL_ERROR'
    status = 500

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        payload = {'code': self.code, 'message': self.message}
        if self.field:
            payload['field'] = self.field
        return payload


class ValidationError(PomodoroError):
    code = 'VALIDATION_ERROR'
    status = 400


class NotFoundError(PomodoroError):
    code = 'NOT_FOUND'
    status = 404


class ConflictError(PomodoroError):
    code = 'CONFLICT_ERROR'
    status = 409


class InvalidStateError(PomodoroError):
    code = 'INVALID_STATE'
    status = 409


class SessionExpiredError(InvalidStateError):
    """The running session already reached its duration; complete it instead."""

    code = 'SESSION_EXPIRED'
