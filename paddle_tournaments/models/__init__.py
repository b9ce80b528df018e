from paddle_tournaments.core.database import Base

# Import all rows here so they are registered with Base before create_all runs
from .tournament import Tournament
from .participant import Participant
from .match import Match
from .notification import Notification
from .user import User
