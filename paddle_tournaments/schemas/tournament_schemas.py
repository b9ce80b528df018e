from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from paddle_tournaments.core.timeutils import as_utc
from paddle_tournaments.models.tournament_model import TournamentFormat, TournamentStatus, TournamentType
from paddle_tournaments.schemas.match_schemas import MatchRead
from paddle_tournaments.services.user_service import UserProfile


class TournamentCreate(BaseModel):
    name: str = Field(min_length=3, max_length=100)
    description: Optional[str] = None
    type: TournamentType
    format: TournamentFormat = TournamentFormat.SINGLES
    start_date: datetime
    end_date: datetime
    registration_deadline: datetime
    min_participants: Optional[int] = None # Falls back to settings.DEFAULT_MIN_PARTICIPANTS
    max_participants: int

    @field_validator("start_date", "end_date", "registration_deadline")
    @classmethod
    def _normalize_timezone(cls, v):
        return as_utc(v)


class TournamentRead(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    organizer_id: str
    type: TournamentType
    format: TournamentFormat
    start_date: datetime
    end_date: datetime
    registration_deadline: datetime
    min_participants: int
    max_participants: int
    status: TournamentStatus
    champion_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TournamentPage(BaseModel):
    items: List[TournamentRead]
    total: int
    page: int
    limit: int
    pages: int


class TypeOption(BaseModel):
    value: str
    label: str


class TournamentTypesRead(BaseModel):
    types: List[TypeOption]
    formats: List[TypeOption]


class BracketRead(BaseModel):
    tournament_id: str
    tournament_type: str
    total_rounds: int
    rounds_structure: Dict[str, Dict[int, List[str]]]
    matches: List[MatchRead]
    players: Dict[str, UserProfile] = Field(default_factory=dict) # Display data, keyed by user id
