import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple

from paddle_tournaments.core.exceptions import NotFound
from paddle_tournaments.core.timeutils import utcnow
from paddle_tournaments.models.bracket_model import MatchModel
from paddle_tournaments.models.tournament_model import (
    ParticipantModel,
    TournamentFilters,
    TournamentModel,
)
from paddle_tournaments.repositories.base import (
    TournamentRepository,
    TournamentState,
    sort_matches,
    sort_participants,
)

logger = logging.getLogger(__name__)


class InMemoryTournamentRepository(TournamentRepository):
    """Process-local store. One lock per tournament serializes its transactions."""

    def __init__(self):
        self._states: Dict[str, TournamentState] = {}
        self._match_index: Dict[str, str] = {} # match id -> tournament id
        self._locks: Dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, tournament_id: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(tournament_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[tournament_id] = lock
            return lock

    def _snapshot(self, tournament_id: str) -> Optional[TournamentState]:
        with self._lock_for(tournament_id):
            state = self._states.get(tournament_id)
            return state.copy() if state else None

    def create_tournament(self, tournament: TournamentModel) -> TournamentModel:
        with self._lock_for(tournament.id):
            self._states[tournament.id] = TournamentState(tournament=tournament.model_copy(deep=True))
        return tournament.model_copy(deep=True)

    def get_tournament(self, tournament_id: str) -> Optional[TournamentModel]:
        state = self._snapshot(tournament_id)
        return state.tournament if state else None

    def _all_states(self) -> List[TournamentState]:
        with self._registry_lock:
            ids = list(self._states.keys())
        states = [self._snapshot(tid) for tid in ids]
        return [s for s in states if s is not None]

    def search_tournaments(self, filters: TournamentFilters) -> Tuple[List[TournamentModel], int]:
        found = []
        for state in self._all_states():
            t = state.tournament
            if filters.status and t.status != filters.status:
                continue
            if filters.type and t.type != filters.type:
                continue
            if filters.format and t.format != filters.format:
                continue
            if filters.organizer_id and t.organizer_id != filters.organizer_id:
                continue
            if filters.start_date and t.start_date < filters.start_date:
                continue
            if filters.end_date and t.end_date > filters.end_date:
                continue
            if filters.has_spots and len(state.participants) >= t.max_participants:
                continue
            found.append(t)
        found.sort(key=lambda t: t.start_date)
        offset = (filters.page - 1) * filters.limit
        return found[offset:offset + filters.limit], len(found)

    def list_user_tournaments(self, user_id: str) -> List[TournamentModel]:
        found = [
            s.tournament for s in self._all_states()
            if s.tournament.organizer_id == user_id or s.find_participant(user_id) is not None
        ]
        return sorted(found, key=lambda t: t.start_date, reverse=True)

    def list_participants(self, tournament_id: str) -> List[ParticipantModel]:
        state = self._snapshot(tournament_id)
        if state is None:
            return []
        return sort_participants(state.participants)

    def count_participants(self, tournament_id: str) -> int:
        state = self._snapshot(tournament_id)
        return len(state.participants) if state else 0

    def get_match(self, match_id: str) -> Optional[MatchModel]:
        tournament_id = self._match_index.get(match_id)
        if tournament_id is None:
            return None
        state = self._snapshot(tournament_id)
        if state is None:
            return None
        return state.matches.get(match_id)

    def list_matches(self, tournament_id: str) -> List[MatchModel]:
        state = self._snapshot(tournament_id)
        if state is None:
            return []
        return sort_matches(list(state.matches.values()))

    @contextmanager
    def transaction(self, tournament_id: str) -> Iterator[TournamentState]:
        with self._lock_for(tournament_id):
            current = self._states.get(tournament_id)
            if current is None:
                raise NotFound(f"Tournament {tournament_id} not found.")
            working = current.copy()
            yield working
            # Only reached when the block did not raise
            if working.tournament != current.tournament or working.participants != current.participants \
                    or working.matches != current.matches:
                working.tournament.version = current.tournament.version + 1
                working.tournament.updated_at = utcnow()
                self._states[tournament_id] = working.copy()
                for match_id in working.matches:
                    self._match_index[match_id] = tournament_id
                logger.debug("Committed tournament %s at version %s", tournament_id, working.tournament.version)
