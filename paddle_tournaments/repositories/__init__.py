from paddle_tournaments.repositories.base import TournamentRepository, TournamentState
from paddle_tournaments.repositories.memory import InMemoryTournamentRepository
from paddle_tournaments.repositories.sql import SqlTournamentRepository, init_db
