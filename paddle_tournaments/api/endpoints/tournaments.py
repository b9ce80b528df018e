import math
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status

from paddle_tournaments.api.dependencies import (
    get_current_user_id,
    get_participant_service,
    get_tournament_service,
)
from paddle_tournaments.models.tournament_model import (
    TournamentFilters,
    TournamentFormat,
    TournamentStatus,
    TournamentType,
)
from paddle_tournaments.schemas import participant_schemas, tournament_schemas
from paddle_tournaments.services.participant_service import ParticipantService
from paddle_tournaments.services.tournament_service import TournamentService

router = APIRouter()


@router.post("", response_model=tournament_schemas.TournamentRead, status_code=status.HTTP_201_CREATED)
def create_tournament_endpoint(
    tournament_in: tournament_schemas.TournamentCreate,
    service: TournamentService = Depends(get_tournament_service),
    current_user_id: str = Depends(get_current_user_id),
):
    return service.create_tournament(tournament_in, organizer_id=current_user_id)


@router.get("", response_model=tournament_schemas.TournamentPage)
def search_tournaments_endpoint(
    status_filter: Optional[TournamentStatus] = Query(default=None, alias="status"),
    type_filter: Optional[TournamentType] = Query(default=None, alias="type"),
    format_filter: Optional[TournamentFormat] = Query(default=None, alias="format"),
    organizer_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    has_spots: bool = False,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    service: TournamentService = Depends(get_tournament_service),
):
    filters = TournamentFilters(
        status=status_filter,
        type=type_filter,
        format=format_filter,
        organizer_id=organizer_id,
        start_date=start_date,
        end_date=end_date,
        has_spots=has_spots,
        page=page,
        limit=limit,
    )
    items, total = service.search_tournaments(filters)
    return {
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "pages": math.ceil(total / limit) if total else 0,
    }


@router.get("/types", response_model=tournament_schemas.TournamentTypesRead)
def list_tournament_types_endpoint(service: TournamentService = Depends(get_tournament_service)):
    return service.list_types()


# Declared before /{tournament_id} so "me" is not read as an id
@router.get("/me", response_model=List[tournament_schemas.TournamentRead])
def list_my_tournaments_endpoint(
    service: TournamentService = Depends(get_tournament_service),
    current_user_id: str = Depends(get_current_user_id),
):
    return service.list_user_tournaments(current_user_id)


@router.get("/{tournament_id}", response_model=tournament_schemas.TournamentRead)
def get_tournament_endpoint(
    tournament_id: str,
    service: TournamentService = Depends(get_tournament_service),
):
    return service.get_tournament(tournament_id)


@router.post("/{tournament_id}/open-registration", response_model=tournament_schemas.TournamentRead)
def open_registration_endpoint(
    tournament_id: str,
    service: TournamentService = Depends(get_tournament_service),
    current_user_id: str = Depends(get_current_user_id),
):
    return service.open_registration(tournament_id, current_user_id)


@router.post("/{tournament_id}/close-registration", response_model=tournament_schemas.TournamentRead)
def close_registration_endpoint(
    tournament_id: str,
    service: TournamentService = Depends(get_tournament_service),
    current_user_id: str = Depends(get_current_user_id),
):
    return service.close_registration(tournament_id, current_user_id)


@router.post("/{tournament_id}/cancel", response_model=tournament_schemas.TournamentRead)
def cancel_tournament_endpoint(
    tournament_id: str,
    service: TournamentService = Depends(get_tournament_service),
    current_user_id: str = Depends(get_current_user_id),
):
    return service.cancel(tournament_id, current_user_id)


@router.post("/{tournament_id}/start", response_model=tournament_schemas.TournamentRead)
def start_tournament_endpoint(
    tournament_id: str,
    service: TournamentService = Depends(get_tournament_service),
    current_user_id: str = Depends(get_current_user_id),
):
    return service.start(tournament_id, current_user_id)


@router.post(
    "/{tournament_id}/register",
    response_model=participant_schemas.ParticipantRead,
    status_code=status.HTTP_201_CREATED,
)
def register_endpoint(
    tournament_id: str,
    register_in: Optional[participant_schemas.RegisterRequest] = None,
    service: ParticipantService = Depends(get_participant_service),
    current_user_id: str = Depends(get_current_user_id),
):
    partner_id = register_in.partner_id if register_in else None
    return service.register(tournament_id, current_user_id, partner_id=partner_id)


@router.post("/{tournament_id}/unregister", response_model=Dict[str, str])
def unregister_endpoint(
    tournament_id: str,
    service: ParticipantService = Depends(get_participant_service),
    current_user_id: str = Depends(get_current_user_id),
):
    service.unregister(tournament_id, current_user_id)
    return {"message": "Registration withdrawn"}


@router.get("/{tournament_id}/participants", response_model=List[participant_schemas.ParticipantRead])
def list_participants_endpoint(
    tournament_id: str,
    service: ParticipantService = Depends(get_participant_service),
):
    participants = service.list_participants(tournament_id)
    profiles = service.profiles_for(p.user_id for p in participants)
    return [
        participant_schemas.ParticipantRead(**p.model_dump(), profile=profiles.get(p.user_id))
        for p in participants
    ]


@router.put(
    "/{tournament_id}/participants/{user_id}/seed",
    response_model=participant_schemas.ParticipantRead,
)
def assign_seed_endpoint(
    tournament_id: str,
    user_id: str,
    seed_in: participant_schemas.SeedUpdate,
    service: ParticipantService = Depends(get_participant_service),
    current_user_id: str = Depends(get_current_user_id),
):
    return service.assign_seed(tournament_id, user_id, seed_in.seed, caller_id=current_user_id)


@router.get("/{tournament_id}/bracket", response_model=tournament_schemas.BracketRead)
def get_bracket_endpoint(
    tournament_id: str,
    service: TournamentService = Depends(get_tournament_service),
    participants: ParticipantService = Depends(get_participant_service),
):
    bracket = service.get_bracket(tournament_id)
    player_ids = [pid for m in bracket.matches for pid in m.team1_ids + m.team2_ids]
    return tournament_schemas.BracketRead(
        tournament_id=bracket.tournament_id,
        tournament_type=bracket.tournament_type,
        total_rounds=bracket.total_rounds,
        rounds_structure=bracket.rounds_structure,
        matches=[m.model_dump() for m in bracket.matches],
        players=participants.profiles_for(player_ids),
    )


@router.get("/{tournament_id}/standings", response_model=List[participant_schemas.StandingRead])
def get_standings_endpoint(
    tournament_id: str,
    service: ParticipantService = Depends(get_participant_service),
):
    return service.get_standings(tournament_id)
