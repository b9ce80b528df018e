from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from paddle_tournaments.models.bracket_model import BracketSide, MatchStatus


class MatchResultCreate(BaseModel):
    winner_id: str
    score: Optional[str] = Field(default=None, max_length=64) # Free text, e.g. "6-4 3-6 7-5"


class MatchRead(BaseModel):
    id: str
    tournament_id: str
    bracket_side: BracketSide
    round_number: int
    match_number: int
    player1_id: Optional[str] = None
    player2_id: Optional[str] = None
    team1_ids: List[str] = []
    team2_ids: List[str] = []
    status: MatchStatus
    winner_id: Optional[str] = None
    winner_team_ids: List[str] = []
    score: Optional[str] = None
    is_bye: bool = False
    completed_at: Optional[datetime] = None
    next_match_id: Optional[str] = None
    loser_next_match_id: Optional[str] = None

    class Config:
        from_attributes = True
