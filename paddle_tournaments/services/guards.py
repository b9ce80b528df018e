from typing import Iterable

from paddle_tournaments.core.exceptions import InvalidStateTransition, Unauthorized
from paddle_tournaments.models.tournament_model import TournamentModel, TournamentStatus


def require_organizer(tournament: TournamentModel, caller_id: str) -> None:
    if tournament.organizer_id != caller_id:
        raise Unauthorized(f"Only the organizer of tournament {tournament.id} can do this.")


def require_status(tournament: TournamentModel, allowed: Iterable[TournamentStatus], action: str) -> None:
    allowed = tuple(allowed)
    if tournament.status not in allowed:
        expected = ", ".join(s.value for s in allowed)
        raise InvalidStateTransition(
            f"Cannot {action} tournament {tournament.id} in status {tournament.status.value} (expected {expected})."
        )
