from datetime import datetime
from uuid import uuid4
from typing import List, Optional, Dict
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from paddle_tournaments.core.timeutils import as_utc


class MatchStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"


class BracketSide(str, Enum):
    WINNERS = "WINNERS" # Also the only side of single elimination and round robin
    LOSERS = "LOSERS"
    GRAND_FINAL = "GRAND_FINAL"


class MatchModel(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    tournament_id: str
    bracket_side: BracketSide = BracketSide.WINNERS
    round_number: int
    match_number: int

    # Slot 1 / slot 2. The id is the entry's captain, the team lists carry every member.
    player1_id: Optional[str] = None
    player2_id: Optional[str] = None
    team1_ids: List[str] = Field(default_factory=list)
    team2_ids: List[str] = Field(default_factory=list)

    status: MatchStatus = MatchStatus.SCHEDULED
    winner_id: Optional[str] = None
    winner_team_ids: List[str] = Field(default_factory=list)
    score: Optional[str] = None
    is_bye: bool = False # Completed automatically, fewer than two players ever arrived
    completed_at: Optional[datetime] = None

    next_match_id: Optional[str] = None
    next_slot: Optional[int] = None
    loser_next_match_id: Optional[str] = None
    loser_next_slot: Optional[int] = None

    class Config:
        from_attributes = True

    @field_validator("completed_at")
    @classmethod
    def _normalize_timezone(cls, v):
        return as_utc(v)

    @property
    def is_completed(self) -> bool:
        return self.status == MatchStatus.COMPLETED

    def players(self) -> List[str]:
        return [p for p in (self.player1_id, self.player2_id) if p is not None]

    def team_of(self, player_id: str) -> List[str]:
        if player_id == self.player1_id:
            return list(self.team1_ids)
        if player_id == self.player2_id:
            return list(self.team2_ids)
        return []

    def loser_id(self) -> Optional[str]:
        if self.winner_id is None or self.is_bye:
            return None
        if self.winner_id == self.player1_id:
            return self.player2_id
        return self.player1_id

    def fill_slot(self, slot: int, player_id: str, team_ids: List[str]) -> None:
        if slot == 1:
            if self.player1_id is not None:
                raise RuntimeError(f"Slot 1 of match {self.id} is already filled.")
            self.player1_id = player_id
            self.team1_ids = list(team_ids)
        elif slot == 2:
            if self.player2_id is not None:
                raise RuntimeError(f"Slot 2 of match {self.id} is already filled.")
            self.player2_id = player_id
            self.team2_ids = list(team_ids)
        else:
            raise RuntimeError(f"Invalid slot value '{slot}' for match {self.id}.")


class BracketModel(BaseModel):
    tournament_id: str
    tournament_type: str
    matches: List[MatchModel] = Field(default_factory=list)

    # side -> round number -> match ids in match-number order
    rounds_structure: Dict[str, Dict[int, List[str]]] = Field(default_factory=dict)
    total_rounds: int = 0
