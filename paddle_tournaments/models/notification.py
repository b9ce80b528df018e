from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON
from paddle_tournaments.core.database import Base
from paddle_tournaments.core.timeutils import utcnow

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    type = Column(String(64), nullable=False) # NotificationEvent value, e.g. "tournament_started"
    payload = Column(JSON, nullable=False, default=dict)
    read_status = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
