"""Participant Registry: entries, seeds and derived standings."""
import logging
from collections import Counter
from typing import Callable, Dict, Iterable, List, Optional

from paddle_tournaments.core.exceptions import (
    AlreadyRegistered,
    DeadlinePassed,
    NotFound,
    RegistrationClosed,
    TournamentFull,
    ValidationError,
)
from paddle_tournaments.core.timeutils import utcnow
from paddle_tournaments.models.bracket_model import BracketSide, MatchModel
from paddle_tournaments.models.tournament_model import (
    ParticipantModel,
    StandingModel,
    TournamentModel,
    TournamentStatus,
    TournamentType,
)
from paddle_tournaments.repositories.base import TournamentRepository, TournamentState, sort_participants
from paddle_tournaments.services.guards import require_organizer, require_status
from paddle_tournaments.services.notification_service import NotificationEvent, Notifier, notify_safely
from paddle_tournaments.services.user_service import UserDirectory, UserProfile

logger = logging.getLogger(__name__)

SEEDABLE_STATUSES = (
    TournamentStatus.DRAFT,
    TournamentStatus.REGISTRATION_OPEN,
    TournamentStatus.REGISTRATION_CLOSED,
)


def _elimination_depth(match: MatchModel, last_losers_round: int) -> int:
    if match.bracket_side == BracketSide.GRAND_FINAL:
        return last_losers_round + 1
    return match.round_number


def compute_standings(
    tournament_type: TournamentType,
    participants: List[ParticipantModel],
    matches: List[MatchModel],
) -> List[StandingModel]:
    """Wins, losses, elimination and rank for every entry, best first.

    Elimination brackets rank by how deep an entry got before losing out
    (entries knocked out in the same round share a rank); round robin puts its
    champion first once every match is played and ranks the rest by wins, ties
    going to the better seed.
    """
    ordered = sort_participants(participants)
    position = {p.user_id: i for i, p in enumerate(ordered)}
    wins: Counter = Counter()
    losses: Counter = Counter()
    knocked_out: Dict[str, int] = {}
    champion_id: Optional[str] = None
    last_losers_round = max((m.round_number for m in matches if m.bracket_side == BracketSide.LOSERS), default=0)

    for match in matches:
        if not match.is_completed or match.is_bye or match.winner_id is None:
            continue # Byes are neither wins nor losses
        loser_id = match.loser_id()
        wins[match.winner_id] += 1
        losses[loser_id] += 1
        if tournament_type == TournamentType.ROUND_ROBIN:
            continue
        # Double elimination only knocks out on the losers side and in the grand final
        if tournament_type == TournamentType.SINGLE_ELIMINATION or match.bracket_side != BracketSide.WINNERS:
            knocked_out[loser_id] = _elimination_depth(match, last_losers_round)
        if match.next_match_id is None:
            champion_id = match.winner_id

    standings = [
        StandingModel(
            participant_id=p.id,
            user_id=p.user_id,
            team_ids=p.team_ids,
            seed=p.seed,
            wins=wins[p.user_id],
            losses=losses[p.user_id],
            eliminated=p.user_id in knocked_out,
        )
        for p in ordered
    ]

    if tournament_type == TournamentType.ROUND_ROBIN:
        # A finished round robin crowns the winner of its first match
        if matches and all(m.is_completed for m in matches):
            champion_id = next((m.winner_id for m in matches if m.match_number == 1), None)
        standings.sort(key=lambda s: (s.user_id != champion_id, -s.wins, position[s.user_id]))
        for rank, standing in enumerate(standings, start=1):
            standing.rank = rank
        return standings

    depth = {s.user_id: knocked_out.get(s.user_id, float("inf")) for s in standings}
    for standing in standings:
        if standing.eliminated:
            mine = depth[standing.user_id]
            standing.rank = 1 + sum(1 for d in depth.values() if d > mine)
        elif standing.user_id == champion_id:
            standing.rank = 1
    standings.sort(key=lambda s: (-depth[s.user_id], -s.wins, position[s.user_id]))
    return standings


class ParticipantService:

    def __init__(
        self,
        repository: TournamentRepository,
        notifier: Notifier,
        user_directory: Optional[UserDirectory] = None,
        clock: Callable = utcnow,
    ):
        self.repository = repository
        self.notifier = notifier
        self.user_directory = user_directory
        self.clock = clock

    def _require_tournament(self, tournament_id: str) -> TournamentModel:
        tournament = self.repository.get_tournament(tournament_id)
        if tournament is None:
            raise NotFound(f"Tournament {tournament_id} not found.")
        return tournament

    def _check_registration_window(self, state: TournamentState) -> None:
        tournament = state.tournament
        if tournament.status != TournamentStatus.REGISTRATION_OPEN:
            raise RegistrationClosed(
                f"Registration for tournament {tournament.id} is not open (status {tournament.status.value})."
            )
        if self.clock() >= tournament.registration_deadline:
            raise DeadlinePassed(f"The registration deadline of tournament {tournament.id} has passed.")

    def register(self, tournament_id: str, user_id: str, partner_id: Optional[str] = None) -> ParticipantModel:
        with self.repository.transaction(tournament_id) as state:
            self._check_registration_window(state)
            tournament = state.tournament

            if tournament.is_team_format:
                if not partner_id:
                    raise ValidationError(f"A {tournament.format.value} entry needs a partner.")
                if partner_id == user_id:
                    raise ValidationError("A player cannot partner with themselves.")
            elif partner_id:
                raise ValidationError("Singles entries cannot name a partner.")

            participant = ParticipantModel(
                tournament_id=tournament_id,
                user_id=user_id,
                partner_id=partner_id,
                registered_at=self.clock(),
            )
            for member in participant.team_ids:
                if state.find_participant(member) is not None:
                    raise AlreadyRegistered(f"User {member} is already registered for tournament {tournament_id}.")

            # Count and insert under the same transaction
            if len(state.participants) >= tournament.max_participants:
                raise TournamentFull(f"Tournament {tournament_id} is full ({tournament.max_participants} entries).")
            state.add_participant(participant)

        logger.info("User %s registered for tournament %s", user_id, tournament_id)
        for member in participant.team_ids:
            notify_safely(
                self.notifier,
                member,
                NotificationEvent.TOURNAMENT_REGISTRATION,
                {"tournament_id": tournament_id, "tournament_name": tournament.name},
            )
        return participant

    def unregister(self, tournament_id: str, user_id: str) -> None:
        with self.repository.transaction(tournament_id) as state:
            self._check_registration_window(state)
            participant = state.find_participant(user_id)
            if participant is None:
                raise NotFound(f"User {user_id} is not registered for tournament {tournament_id}.")
            state.remove_participant(participant.id)
        logger.info("Entry %s withdrawn from tournament %s", participant.id, tournament_id)

    def assign_seed(self, tournament_id: str, user_id: str, seed: Optional[int], caller_id: str) -> ParticipantModel:
        if seed is not None and seed < 1:
            raise ValidationError("Seeds start at 1.")
        with self.repository.transaction(tournament_id) as state:
            require_organizer(state.tournament, caller_id)
            require_status(state.tournament, SEEDABLE_STATUSES, "seed")
            participant = state.find_participant(user_id)
            if participant is None:
                raise NotFound(f"User {user_id} is not registered for tournament {tournament_id}.")
            if seed is not None and any(p.seed == seed and p.id != participant.id for p in state.participants):
                raise ValidationError(f"Seed {seed} is already taken in tournament {tournament_id}.")
            participant.seed = seed
        return participant.model_copy()

    def list_participants(self, tournament_id: str) -> List[ParticipantModel]:
        self._require_tournament(tournament_id)
        return self.repository.list_participants(tournament_id)

    def get_standings(self, tournament_id: str) -> List[StandingModel]:
        tournament = self._require_tournament(tournament_id)
        return compute_standings(
            tournament.type,
            self.repository.list_participants(tournament_id),
            self.repository.list_matches(tournament_id),
        )

    def profiles_for(self, user_ids: Iterable[str]) -> Dict[str, UserProfile]:
        if self.user_directory is None:
            return {}
        profiles = {}
        for user_id in set(user_ids):
            profile = self.user_directory.get_profile_safely(user_id)
            if profile is not None:
                profiles[user_id] = profile
        return profiles
