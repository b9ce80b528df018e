"""Domain errors raised by the bracket engine.

Every error carries the HTTP status the API layer answers with and a stable
``code`` so callers can tell "someone else already did this" (conflicts)
apart from "the input was invalid".
"""
from typing import Optional

from fastapi import status


class TournamentError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "tournament_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(TournamentError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class Unauthorized(TournamentError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "unauthorized"


class InvalidStateTransition(TournamentError):
    status_code = status.HTTP_409_CONFLICT
    code = "invalid_state_transition"


class ValidationError(TournamentError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "validation_error"


class InsufficientParticipants(TournamentError):
    status_code = status.HTTP_409_CONFLICT
    code = "insufficient_participants"


class TournamentFull(TournamentError):
    status_code = status.HTTP_409_CONFLICT
    code = "tournament_full"


class AlreadyRegistered(TournamentError):
    status_code = status.HTTP_409_CONFLICT
    code = "already_registered"


class RegistrationClosed(TournamentError):
    status_code = status.HTTP_409_CONFLICT
    code = "registration_closed"


class DeadlinePassed(RegistrationClosed):
    code = "deadline_passed"


class InvalidWinner(TournamentError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "invalid_winner"


class AlreadyRecorded(TournamentError):
    status_code = status.HTTP_409_CONFLICT
    code = "already_recorded"


class ConcurrentUpdate(TournamentError):
    """The store saw a newer version of the tournament, or of ``match_id``, than the one read."""

    status_code = status.HTTP_409_CONFLICT
    code = "concurrent_update"

    def __init__(self, message: str, match_id: Optional[str] = None):
        super().__init__(message)
        self.match_id = match_id
