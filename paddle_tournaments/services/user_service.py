import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

from pydantic import BaseModel
from sqlalchemy.orm import sessionmaker

from paddle_tournaments.models import user as user_model

logger = logging.getLogger(__name__)


class UserProfile(BaseModel):
    id: str
    name: str
    avatar_url: Optional[str] = None
    skill_level: Optional[str] = None

    class Config:
        from_attributes = True


class UserDirectory(ABC):
    """Display attributes of platform users. Only used to decorate views."""

    @abstractmethod
    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        ...

    def get_profile_safely(self, user_id: str) -> Optional[UserProfile]:
        try:
            return self.get_profile(user_id)
        except Exception:
            logger.warning("Profile lookup failed for user %s", user_id, exc_info=True)
            return None


class InMemoryUserDirectory(UserDirectory):

    def __init__(self, profiles: Optional[Dict[str, UserProfile]] = None):
        self._profiles: Dict[str, UserProfile] = dict(profiles or {})

    def add(self, profile: UserProfile) -> None:
        self._profiles[profile.id] = profile

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        return self._profiles.get(user_id)


class SqlUserDirectory(UserDirectory):

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        db = self._session_factory()
        try:
            row = db.query(user_model.User).filter(user_model.User.id == user_id).first()
            return UserProfile.model_validate(row) if row else None
        finally:
            db.close()
