from fastapi import APIRouter, Depends

from paddle_tournaments.api.dependencies import get_current_user_id, get_match_service
from paddle_tournaments.schemas import match_schemas
from paddle_tournaments.services.match_service import MatchService

router = APIRouter()


@router.get("/{match_id}", response_model=match_schemas.MatchRead)
def get_match_endpoint(
    match_id: str,
    service: MatchService = Depends(get_match_service),
):
    return service.get_match(match_id)


@router.post("/{match_id}/result", response_model=match_schemas.MatchRead)
def record_match_result_endpoint(
    match_id: str,
    result_in: match_schemas.MatchResultCreate,
    service: MatchService = Depends(get_match_service),
    current_user_id: str = Depends(get_current_user_id),
):
    return service.record_result(
        match_id=match_id,
        winner_id=result_in.winner_id,
        score=result_in.score,
        caller_id=current_user_id,
    )
