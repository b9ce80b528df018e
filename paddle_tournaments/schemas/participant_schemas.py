from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from paddle_tournaments.services.user_service import UserProfile


class RegisterRequest(BaseModel):
    partner_id: Optional[str] = None # Required for doubles formats


class SeedUpdate(BaseModel):
    seed: Optional[int] = Field(default=None, ge=1) # None clears the seed


class ParticipantRead(BaseModel):
    id: str
    tournament_id: str
    user_id: str
    partner_id: Optional[str] = None
    registered_at: datetime
    seed: Optional[int] = None
    eliminated: bool = False
    final_rank: Optional[int] = None
    profile: Optional[UserProfile] = None

    class Config:
        from_attributes = True


class StandingRead(BaseModel):
    participant_id: str
    user_id: str
    team_ids: List[str]
    seed: Optional[int] = None
    wins: int
    losses: int
    eliminated: bool
    rank: Optional[int] = None

    class Config:
        from_attributes = True
