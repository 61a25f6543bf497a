"""
League error taxonomy.

Every error carries a stable snake_case reason code (e.g. "not_enough_participants").
The core never builds display text; the HTTP layer maps the error class to a
status code and passes the code through as `detail`.
"""

from typing import Optional

from fastapi import HTTPException


class LeagueError(Exception):
    """Base class for all reason-coded league errors."""

    status_code = 400

    def __init__(self, code: str, context: Optional[dict] = None):
        super().__init__(code)
        self.code = code
        self.context = context or {}


class LeagueValidationError(LeagueError):
    """Bad input to the scheduler or bracket configuration. Raised before any write."""

    status_code = 422


class StateConflictError(LeagueError):
    """Operation conflicts with the current season state (e.g. series already exist)."""

    status_code = 409


class LeagueNotFoundError(LeagueError):
    status_code = 404


class TransientFinalizationError(LeagueError):
    """Timeout or serialization conflict; the caller may retry finalize safely."""

    status_code = 503


def to_http_exception(exc: LeagueError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.code)
