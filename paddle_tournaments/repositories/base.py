"""Persistence port consumed by the tournament services.

Services never talk to a database directly. Reads go through the plain
getters; every mutation happens inside ``transaction()``, which hands out a
private, mutable copy of one tournament aggregate and persists it atomically
when the block exits without an exception.
"""
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from paddle_tournaments.models.bracket_model import MatchModel
from paddle_tournaments.models.tournament_model import (
    ParticipantModel,
    TournamentFilters,
    TournamentModel,
)


@dataclass
class TournamentState:
    """A tournament with its participants and bracket, as seen inside one transaction."""

    tournament: TournamentModel
    participants: List[ParticipantModel] = field(default_factory=list)
    matches: Dict[str, MatchModel] = field(default_factory=dict)

    def find_participant(self, user_id: str) -> Optional[ParticipantModel]:
        """Entry held by ``user_id``, either as the registrant or as a doubles partner."""
        for participant in self.participants:
            if user_id in participant.team_ids:
                return participant
        return None

    def add_participant(self, participant: ParticipantModel) -> None:
        self.participants.append(participant)

    def remove_participant(self, participant_id: str) -> None:
        self.participants = [p for p in self.participants if p.id != participant_id]

    def add_matches(self, matches: List[MatchModel]) -> None:
        for match in matches:
            self.matches[match.id] = match

    def copy(self) -> "TournamentState":
        return TournamentState(
            tournament=self.tournament.model_copy(deep=True),
            participants=[p.model_copy(deep=True) for p in self.participants],
            matches={k: m.model_copy(deep=True) for k, m in self.matches.items()},
        )


class TournamentRepository(ABC):

    @abstractmethod
    def create_tournament(self, tournament: TournamentModel) -> TournamentModel:
        ...

    @abstractmethod
    def get_tournament(self, tournament_id: str) -> Optional[TournamentModel]:
        ...

    @abstractmethod
    def search_tournaments(self, filters: TournamentFilters) -> Tuple[List[TournamentModel], int]:
        """Return one page of matching tournaments and the total match count."""

    @abstractmethod
    def list_user_tournaments(self, user_id: str) -> List[TournamentModel]:
        """Tournaments organized by ``user_id`` or entered by them (alone or as a partner)."""

    @abstractmethod
    def list_participants(self, tournament_id: str) -> List[ParticipantModel]:
        ...

    @abstractmethod
    def count_participants(self, tournament_id: str) -> int:
        ...

    @abstractmethod
    def get_match(self, match_id: str) -> Optional[MatchModel]:
        ...

    @abstractmethod
    def list_matches(self, tournament_id: str) -> List[MatchModel]:
        ...

    @abstractmethod
    def transaction(self, tournament_id: str) -> AbstractContextManager:
        """Serialized read-modify-write of one tournament.

        Yields a ``TournamentState``; raises ``NotFound`` if the tournament does
        not exist. Changes are discarded if the block raises.
        """


def sort_matches(matches: List[MatchModel]) -> List[MatchModel]:
    side_order = {"WINNERS": 0, "LOSERS": 1, "GRAND_FINAL": 2}
    return sorted(
        matches,
        key=lambda m: (side_order[m.bracket_side.value], m.round_number, m.match_number),
    )


def sort_participants(participants: List[ParticipantModel]) -> List[ParticipantModel]:
    """Seed ascending (unseeded last), then registration time."""
    return sorted(
        participants,
        key=lambda p: (p.seed is None, p.seed if p.seed is not None else 0, p.registered_at),
    )
