from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from paddle_tournaments.core.database import Base

class Match(Base):
    __tablename__ = "tournament_matches"
    __table_args__ = (
        UniqueConstraint("tournament_id", "bracket_side", "round_number", "match_number", name="uq_match_position"),
    )

    id = Column(String(36), primary_key=True, index=True)
    tournament_id = Column(String(36), ForeignKey("tournaments.id"), nullable=False, index=True)
    bracket_side = Column(String(16), nullable=False)
    round_number = Column(Integer, nullable=False)
    match_number = Column(Integer, nullable=False)
    player1_id = Column(String(64), nullable=True)
    player2_id = Column(String(64), nullable=True)
    team1_ids = Column(JSON, nullable=False, default=list)
    team2_ids = Column(JSON, nullable=False, default=list)
    status = Column(String(16), nullable=False)
    winner_id = Column(String(64), nullable=True)
    winner_team_ids = Column(JSON, nullable=False, default=list)
    score = Column(String(64), nullable=True) # e.g., "6-4, 6-3"
    is_bye = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Plain columns rather than foreign keys: the whole bracket is inserted in one statement batch
    next_match_id = Column(String(36), nullable=True)
    next_slot = Column(Integer, nullable=True)
    loser_next_match_id = Column(String(36), nullable=True)
    loser_next_slot = Column(Integer, nullable=True)

    tournament = relationship("Tournament", back_populates="matches")
