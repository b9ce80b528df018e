from sqlalchemy import Column, String
from paddle_tournaments.core.database import Base

class User(Base):
    """Read-only view of the platform's user directory."""

    __tablename__ = "users"

    id = Column(String(64), primary_key=True, index=True)
    name = Column(String, nullable=False)
    avatar_url = Column(String, nullable=True)
    skill_level = Column(String, nullable=True)
