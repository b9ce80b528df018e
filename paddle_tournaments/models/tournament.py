from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.orm import relationship
from paddle_tournaments.core.database import Base

class Tournament(Base):
    __tablename__ = "tournaments"

    id = Column(String(36), primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    organizer_id = Column(String(64), nullable=False, index=True)
    type = Column(String(32), nullable=False) # TournamentType value
    format = Column(String(32), nullable=False) # TournamentFormat value
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    registration_deadline = Column(DateTime(timezone=True), nullable=False)
    min_participants = Column(Integer, nullable=False)
    max_participants = Column(Integer, nullable=False)
    status = Column(String(32), nullable=False, index=True)
    champion_id = Column(String(64), nullable=True)
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    participants = relationship("Participant", back_populates="tournament")
    matches = relationship("Match", back_populates="tournament")
