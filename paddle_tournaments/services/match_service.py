import logging
from typing import Callable, Optional

from paddle_tournaments.core.exceptions import (
    AlreadyRecorded,
    ConcurrentUpdate,
    InvalidStateTransition,
    InvalidWinner,
    NotFound,
)
from paddle_tournaments.core.timeutils import utcnow
from paddle_tournaments.models.bracket_model import MatchModel, MatchStatus
from paddle_tournaments.models.tournament_model import TournamentStatus
from paddle_tournaments.repositories.base import TournamentRepository
from paddle_tournaments.services.advancement_service import AdvancementService
from paddle_tournaments.services.guards import require_organizer

logger = logging.getLogger(__name__)


class MatchService:
    """Match Result Recorder.

    A result, the advancement it causes and the completion check that may
    follow are committed in one store transaction.
    """

    def __init__(self, repository: TournamentRepository, advancement: AdvancementService,
                 clock: Callable = utcnow):
        self.repository = repository
        self.advancement = advancement
        self.clock = clock

    def get_match(self, match_id: str) -> MatchModel:
        match = self.repository.get_match(match_id)
        if match is None:
            raise NotFound(f"Match {match_id} not found.")
        return match

    def record_result(self, match_id: str, winner_id: str, score: Optional[str], caller_id: str) -> MatchModel:
        tournament_id = self.get_match(match_id).tournament_id
        try:
            with self.repository.transaction(tournament_id) as state:
                match = state.matches.get(match_id)
                if match is None:
                    raise NotFound(f"Match {match_id} not found.")
                tournament = state.tournament
                require_organizer(tournament, caller_id)

                if tournament.status != TournamentStatus.IN_PROGRESS:
                    raise InvalidStateTransition(
                        f"Tournament {tournament.id} is {tournament.status.value}; results can only be recorded in progress."
                    )
                if match.is_completed:
                    raise AlreadyRecorded(f"Match {match_id} already has a result.")
                if len(match.players()) < 2:
                    raise InvalidStateTransition(f"Match {match_id} is still waiting for its players.")
                if winner_id not in match.players():
                    raise InvalidWinner(f"User {winner_id} is not playing match {match_id}.")

                match.status = MatchStatus.COMPLETED
                match.winner_id = winner_id
                match.winner_team_ids = match.team_of(winner_id)
                match.score = score
                match.completed_at = self.clock()

                champion_id = self.advancement.propagate(state, match)
                recorded = match.model_copy(deep=True)
                champion_team = []
                if champion_id:
                    entry = state.find_participant(champion_id)
                    champion_team = entry.team_ids if entry else [champion_id]
        except ConcurrentUpdate as exc:
            if exc.match_id != match_id:
                raise
            raise AlreadyRecorded(f"Match {match_id} was recorded concurrently.") from exc

        logger.info("Recorded result of match %s: winner %s (%s)", match_id, winner_id, score)
        if champion_id:
            self.advancement.announce_champion(tournament, champion_team)
        return recorded