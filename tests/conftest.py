from datetime import timedelta
from typing import List
from unittest.mock import MagicMock

import pytest

from paddle_tournaments.core.timeutils import utcnow
from paddle_tournaments.models.tournament_model import (
    ParticipantModel,
    TournamentFormat,
    TournamentType,
)
from paddle_tournaments.repositories.memory import InMemoryTournamentRepository
from paddle_tournaments.schemas.tournament_schemas import TournamentCreate
from paddle_tournaments.services.advancement_service import AdvancementService
from paddle_tournaments.services.match_service import MatchService
from paddle_tournaments.services.notification_service import Notifier
from paddle_tournaments.services.participant_service import ParticipantService
from paddle_tournaments.services.tournament_service import TournamentService

ORGANIZER_ID = "organizer-1"


def tournament_data(
    tournament_type: TournamentType = TournamentType.SINGLE_ELIMINATION,
    tournament_format: TournamentFormat = TournamentFormat.SINGLES,
    min_participants: int = 2,
    max_participants: int = 16,
) -> TournamentCreate:
    now = utcnow()
    return TournamentCreate(
        name="Club Open",
        type=tournament_type,
        format=tournament_format,
        registration_deadline=now + timedelta(days=7),
        start_date=now + timedelta(days=10),
        end_date=now + timedelta(days=12),
        min_participants=min_participants,
        max_participants=max_participants,
    )


def make_entrants(count: int, tournament_id: str = "t-1") -> List[ParticipantModel]:
    """Entrants p1..pN, seeded in order."""
    return [
        ParticipantModel(tournament_id=tournament_id, user_id=f"p{i}", seed=i)
        for i in range(1, count + 1)
    ]


@pytest.fixture
def repository():
    return InMemoryTournamentRepository()


@pytest.fixture
def mock_notifier():
    return MagicMock(spec=Notifier)


@pytest.fixture
def tournament_service(repository, mock_notifier):
    return TournamentService(repository, mock_notifier)


@pytest.fixture
def participant_service(repository, mock_notifier):
    return ParticipantService(repository, mock_notifier)


@pytest.fixture
def match_service(repository, mock_notifier):
    return MatchService(repository, AdvancementService(mock_notifier))


@pytest.fixture
def open_tournament(tournament_service):
    """Factory: a tournament with registration open."""

    def _create(**kwargs):
        tournament = tournament_service.create_tournament(tournament_data(**kwargs), ORGANIZER_ID)
        return tournament_service.open_registration(tournament.id, ORGANIZER_ID)

    return _create


@pytest.fixture
def closed_tournament(open_tournament, tournament_service, participant_service):
    """Factory: a tournament with ``count`` singles entrants p1..pN and registration closed."""

    def _create(count: int, **kwargs):
        tournament = open_tournament(**kwargs)
        for i in range(1, count + 1):
            participant_service.register(tournament.id, f"p{i}")
        return tournament_service.close_registration(tournament.id, ORGANIZER_ID)

    return _create


@pytest.fixture
def started_tournament(closed_tournament, tournament_service):
    def _create(count: int, **kwargs):
        tournament = closed_tournament(count, **kwargs)
        return tournament_service.start(tournament.id, ORGANIZER_ID)

    return _create
