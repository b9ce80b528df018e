from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from paddle_tournaments.core.database import Base

class Participant(Base):
    __tablename__ = "tournament_participants"
    __table_args__ = (UniqueConstraint("tournament_id", "user_id", name="uq_participant_user"),)

    id = Column(String(36), primary_key=True, index=True)
    tournament_id = Column(String(36), ForeignKey("tournaments.id"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False)
    partner_id = Column(String(64), nullable=True) # Doubles formats only
    registered_at = Column(DateTime(timezone=True), nullable=False)
    seed = Column(Integer, nullable=True)
    eliminated = Column(Boolean, nullable=False, default=False)
    final_rank = Column(Integer, nullable=True)

    tournament = relationship("Tournament", back_populates="participants")
