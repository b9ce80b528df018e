from fastapi import Request

from paddle_tournaments.core.security import get_current_user_id # noqa: F401 (re-exported for routers)
from paddle_tournaments.services.match_service import MatchService
from paddle_tournaments.services.participant_service import ParticipantService
from paddle_tournaments.services.tournament_service import TournamentService

# Services are built once by create_app() and kept on app.state


def get_tournament_service(request: Request) -> TournamentService:
    return request.app.state.tournament_service


def get_participant_service(request: Request) -> ParticipantService:
    return request.app.state.participant_service


def get_match_service(request: Request) -> MatchService:
    return request.app.state.match_service
