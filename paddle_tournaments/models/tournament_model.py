from datetime import datetime
from typing import Optional, List
from uuid import uuid4
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from paddle_tournaments.core.timeutils import as_utc, utcnow


class TournamentType(str, Enum):
    SINGLE_ELIMINATION = "SINGLE_ELIMINATION"
    DOUBLE_ELIMINATION = "DOUBLE_ELIMINATION"
    ROUND_ROBIN = "ROUND_ROBIN"


class TournamentFormat(str, Enum):
    SINGLES = "SINGLES"
    DOUBLES = "DOUBLES"
    MIXED_DOUBLES = "MIXED_DOUBLES"


class TournamentStatus(str, Enum):
    DRAFT = "DRAFT"
    REGISTRATION_OPEN = "REGISTRATION_OPEN"
    REGISTRATION_CLOSED = "REGISTRATION_CLOSED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = frozenset({TournamentStatus.COMPLETED, TournamentStatus.CANCELLED})


class TournamentModel(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = Field(min_length=3, max_length=100)
    description: Optional[str] = None
    organizer_id: str # References the platform user id
    type: TournamentType
    format: TournamentFormat = TournamentFormat.SINGLES
    start_date: datetime
    end_date: datetime
    registration_deadline: datetime
    min_participants: int
    max_participants: int
    status: TournamentStatus = TournamentStatus.DRAFT
    champion_id: Optional[str] = None
    version: int = 0 # Bumped by the store on every committed change
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Config:
        from_attributes = True

    @field_validator("start_date", "end_date", "registration_deadline", "created_at", "updated_at")
    @classmethod
    def _normalize_timezone(cls, v):
        return as_utc(v)

    @property
    def is_team_format(self) -> bool:
        return self.format in (TournamentFormat.DOUBLES, TournamentFormat.MIXED_DOUBLES)


class ParticipantModel(BaseModel):
    """One entry in a tournament: a single player, or a pair for doubles formats."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    tournament_id: str
    user_id: str
    partner_id: Optional[str] = None
    registered_at: datetime = Field(default_factory=utcnow)
    seed: Optional[int] = None
    eliminated: bool = False
    final_rank: Optional[int] = None

    class Config:
        from_attributes = True

    @field_validator("registered_at")
    @classmethod
    def _normalize_timezone(cls, v):
        return as_utc(v)

    @property
    def team_ids(self) -> List[str]:
        if self.partner_id:
            return [self.user_id, self.partner_id]
        return [self.user_id]


class TournamentFilters(BaseModel):
    status: Optional[TournamentStatus] = None
    type: Optional[TournamentType] = None
    format: Optional[TournamentFormat] = None
    organizer_id: Optional[str] = None
    start_date: Optional[datetime] = None # Tournaments starting on/after
    end_date: Optional[datetime] = None # Tournaments ending on/before
    has_spots: bool = False
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)

    @field_validator("start_date", "end_date")
    @classmethod
    def _normalize_timezone(cls, v):
        return as_utc(v)


class StandingModel(BaseModel):
    """Derived ranking row for one entry; never stored on its own."""

    participant_id: str
    user_id: str
    team_ids: List[str] = Field(default_factory=list)
    seed: Optional[int] = None
    wins: int = 0
    losses: int = 0
    eliminated: bool = False
    rank: Optional[int] = None
