"""Tournament Lifecycle Manager.

DRAFT -> REGISTRATION_OPEN -> REGISTRATION_CLOSED -> IN_PROGRESS -> COMPLETED,
with CANCELLED reachable from every non-terminal status. Every transition is
organizer-only and runs inside one store transaction, so two callers racing on
the same tournament see each other's result instead of both succeeding.
"""
import logging
from typing import Callable, Dict, List, Optional, Tuple

from paddle_tournaments.core.config import settings
from paddle_tournaments.core.exceptions import (
    ConcurrentUpdate,
    InsufficientParticipants,
    InvalidStateTransition,
    NotFound,
    ValidationError,
)
from paddle_tournaments.models.bracket_model import BracketModel
from paddle_tournaments.models.tournament_model import (
    TERMINAL_STATUSES,
    TournamentFilters,
    TournamentFormat,
    TournamentModel,
    TournamentStatus,
    TournamentType,
)
from paddle_tournaments.repositories.base import TournamentRepository, sort_participants
from paddle_tournaments.schemas.tournament_schemas import TournamentCreate
from paddle_tournaments.services import bracket_service
from paddle_tournaments.services.guards import require_organizer, require_status
from paddle_tournaments.services.notification_service import NotificationEvent, Notifier, notify_safely

logger = logging.getLogger(__name__)

TYPE_LABELS = {
    TournamentType.SINGLE_ELIMINATION: "Single elimination",
    TournamentType.DOUBLE_ELIMINATION: "Double elimination",
    TournamentType.ROUND_ROBIN: "Round robin",
}

FORMAT_LABELS = {
    TournamentFormat.SINGLES: "Singles",
    TournamentFormat.DOUBLES: "Doubles",
    TournamentFormat.MIXED_DOUBLES: "Mixed doubles",
}


class TournamentService:

    def __init__(
        self,
        repository: TournamentRepository,
        notifier: Notifier,
        generate: Callable = bracket_service.generate,
        default_min_participants: Optional[int] = None,
    ):
        self.repository = repository
        self.notifier = notifier
        self.generate = generate
        if default_min_participants is None:
            default_min_participants = settings.DEFAULT_MIN_PARTICIPANTS
        self.default_min_participants = default_min_participants

    def create_tournament(self, data: TournamentCreate, organizer_id: str) -> TournamentModel:
        min_participants = data.min_participants
        if min_participants is None:
            min_participants = self.default_min_participants
        if not data.registration_deadline < data.start_date < data.end_date:
            raise ValidationError("Expected registration_deadline < start_date < end_date.")
        if min_participants < 2:
            raise ValidationError("A tournament needs at least two participants.")
        if data.max_participants < min_participants:
            raise ValidationError(
                f"max_participants ({data.max_participants}) is below min_participants ({min_participants})."
            )

        tournament = TournamentModel(
            name=data.name,
            description=data.description,
            organizer_id=organizer_id,
            type=data.type,
            format=data.format,
            start_date=data.start_date,
            end_date=data.end_date,
            registration_deadline=data.registration_deadline,
            min_participants=min_participants,
            max_participants=data.max_participants,
        )
        created = self.repository.create_tournament(tournament)
        logger.info("Tournament %s (%s) created by %s", created.id, created.type.value, organizer_id)
        return created

    def get_tournament(self, tournament_id: str) -> TournamentModel:
        tournament = self.repository.get_tournament(tournament_id)
        if tournament is None:
            raise NotFound(f"Tournament {tournament_id} not found.")
        return tournament

    def search_tournaments(self, filters: TournamentFilters) -> Tuple[List[TournamentModel], int]:
        return self.repository.search_tournaments(filters)

    def list_user_tournaments(self, user_id: str) -> List[TournamentModel]:
        return self.repository.list_user_tournaments(user_id)

    def _transition(self, tournament_id: str, caller_id: str, allowed, target: TournamentStatus,
                    action: str) -> Tuple[TournamentModel, bool]:
        """Move to ``target``; already being there is a no-op. Returns the tournament and whether it changed."""
        with self.repository.transaction(tournament_id) as state:
            tournament = state.tournament
            require_organizer(tournament, caller_id)
            if tournament.status == target:
                return tournament, False
            require_status(tournament, allowed, action)
            tournament.status = target
        logger.info("Tournament %s is now %s", tournament_id, target.value)
        return tournament, True

    def open_registration(self, tournament_id: str, caller_id: str) -> TournamentModel:
        with self.repository.transaction(tournament_id) as state:
            tournament = state.tournament
            require_organizer(tournament, caller_id)
            require_status(tournament, [TournamentStatus.DRAFT], "open registration for")
            tournament.status = TournamentStatus.REGISTRATION_OPEN
        logger.info("Registration open for tournament %s", tournament_id)
        return tournament

    def close_registration(self, tournament_id: str, caller_id: str) -> TournamentModel:
        tournament, _ = self._transition(
            tournament_id, caller_id,
            [TournamentStatus.REGISTRATION_OPEN], TournamentStatus.REGISTRATION_CLOSED,
            "close registration for",
        )
        return tournament

    def cancel(self, tournament_id: str, caller_id: str) -> TournamentModel:
        cancellable = [s for s in TournamentStatus if s not in TERMINAL_STATUSES]
        tournament, changed = self._transition(
            tournament_id, caller_id, cancellable, TournamentStatus.CANCELLED, "cancel",
        )
        if changed:
            for participant in self.repository.list_participants(tournament_id):
                for user_id in participant.team_ids:
                    notify_safely(
                        self.notifier,
                        user_id,
                        NotificationEvent.TOURNAMENT_CANCELLED,
                        {"tournament_id": tournament_id, "tournament_name": tournament.name},
                    )
        return tournament

    def start(self, tournament_id: str, caller_id: str) -> TournamentModel:
        try:
            with self.repository.transaction(tournament_id) as state:
                tournament = state.tournament
                require_organizer(tournament, caller_id)
                require_status(tournament, [TournamentStatus.REGISTRATION_CLOSED], "start")

                required = max(tournament.min_participants, 2)
                if len(state.participants) < required:
                    raise InsufficientParticipants(
                        f"Tournament {tournament_id} has {len(state.participants)} entries, needs {required}."
                    )
                entrants = sort_participants(state.participants)
                state.add_matches(self.generate(tournament.type, entrants, tournament_id))
                tournament.status = TournamentStatus.IN_PROGRESS
        except ConcurrentUpdate as exc:
            raise InvalidStateTransition(f"Tournament {tournament_id} was started concurrently.") from exc

        logger.info("Tournament %s started with %d entries", tournament_id, len(entrants))
        for participant in entrants:
            for user_id in participant.team_ids:
                notify_safely(
                    self.notifier,
                    user_id,
                    NotificationEvent.TOURNAMENT_STARTED,
                    {"tournament_id": tournament_id, "tournament_name": tournament.name},
                )
        return tournament

    def get_bracket(self, tournament_id: str) -> BracketModel:
        tournament = self.get_tournament(tournament_id)
        return bracket_service.build_bracket_view(
            tournament.id, tournament.type, self.repository.list_matches(tournament_id)
        )

    def list_types(self) -> Dict[str, List[Dict[str, str]]]:
        return {
            "types": [{"value": t.value, "label": label} for t, label in TYPE_LABELS.items()],
            "formats": [{"value": f.value, "label": label} for f, label in FORMAT_LABELS.items()],
        }
