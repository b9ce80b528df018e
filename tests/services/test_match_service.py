import threading
from unittest.mock import MagicMock

import pytest

from conftest import ORGANIZER_ID
from paddle_tournaments.core.exceptions import (
    AlreadyRecorded,
    ConcurrentUpdate,
    InvalidStateTransition,
    InvalidWinner,
    NotFound,
    Unauthorized,
)
from paddle_tournaments.models.bracket_model import BracketSide, MatchModel, MatchStatus
from paddle_tournaments.models.tournament_model import TournamentStatus, TournamentType
from paddle_tournaments.repositories.base import TournamentRepository
from paddle_tournaments.services.advancement_service import AdvancementService
from paddle_tournaments.services.match_service import MatchService
from paddle_tournaments.services.notification_service import NotificationEvent, Notifier


def first_playable(repository, tournament_id):
    return next(
        m for m in repository.list_matches(tournament_id)
        if m.status == MatchStatus.SCHEDULED and len(m.players()) == 2
    )


def play_all(match_service, repository, tournament_id, pick=lambda m: m.player1_id):
    while True:
        playable = [
            m for m in repository.list_matches(tournament_id)
            if m.status == MatchStatus.SCHEDULED and len(m.players()) == 2
        ]
        if not playable:
            return
        match = playable[0]
        match_service.record_result(match.id, pick(match), "6-4 6-4", ORGANIZER_ID)


class TestMatchServiceRecordResult:

    def test_record_result(self, started_tournament, match_service, repository):
        tournament = started_tournament(4)
        match = first_playable(repository, tournament.id)

        recorded = match_service.record_result(match.id, "p2", "6-4 7-5", ORGANIZER_ID)

        assert recorded.status == MatchStatus.COMPLETED
        assert recorded.winner_id == "p2"
        assert recorded.winner_team_ids == ["p2"]
        assert recorded.score == "6-4 7-5"
        assert recorded.completed_at is not None
        final = repository.get_match(match.next_match_id)
        assert final.player1_id == "p2"

    def test_unknown_match(self, match_service):
        with pytest.raises(NotFound):
            match_service.record_result("missing", "p1", None, ORGANIZER_ID)

    def test_only_organizer_records(self, started_tournament, match_service, repository):
        tournament = started_tournament(4)
        match = first_playable(repository, tournament.id)

        with pytest.raises(Unauthorized):
            match_service.record_result(match.id, "p1", None, "p1")

    def test_winner_must_be_playing(self, started_tournament, match_service, repository):
        tournament = started_tournament(4)
        match = first_playable(repository, tournament.id)

        with pytest.raises(InvalidWinner):
            match_service.record_result(match.id, "p3", None, ORGANIZER_ID)

    def test_second_result_is_rejected_and_changes_nothing(self, started_tournament, match_service, repository):
        tournament = started_tournament(4)
        match = first_playable(repository, tournament.id)
        match_service.record_result(match.id, "p1", "6-0 6-0", ORGANIZER_ID)
        before = [m.model_dump() for m in repository.list_matches(tournament.id)]

        with pytest.raises(AlreadyRecorded):
            match_service.record_result(match.id, "p2", "0-6 0-6", ORGANIZER_ID)

        assert [m.model_dump() for m in repository.list_matches(tournament.id)] == before

    def test_bye_cannot_be_recorded(self, started_tournament, match_service, repository):
        tournament = started_tournament(3)
        bye = next(m for m in repository.list_matches(tournament.id) if m.is_bye)

        with pytest.raises(AlreadyRecorded):
            match_service.record_result(bye.id, bye.player1_id, None, ORGANIZER_ID)

    def test_match_waiting_for_players(self, started_tournament, match_service, repository):
        tournament = started_tournament(4)
        final = next(m for m in repository.list_matches(tournament.id) if m.round_number == 2)

        with pytest.raises(InvalidStateTransition, match="waiting"):
            match_service.record_result(final.id, "p1", None, ORGANIZER_ID)

    def test_cancelled_tournament(self, started_tournament, tournament_service, match_service, repository):
        tournament = started_tournament(4)
        match = first_playable(repository, tournament.id)
        tournament_service.cancel(tournament.id, ORGANIZER_ID)

        with pytest.raises(InvalidStateTransition):
            match_service.record_result(match.id, "p1", None, ORGANIZER_ID)

    def test_concurrent_results_for_one_match(self, started_tournament, match_service, repository):
        tournament = started_tournament(8)
        match = first_playable(repository, tournament.id)
        barrier = threading.Barrier(8)
        outcomes = []
        outcomes_lock = threading.Lock()

        def submit(winner_id):
            barrier.wait()
            try:
                match_service.record_result(match.id, winner_id, None, ORGANIZER_ID)
                result = winner_id
            except AlreadyRecorded:
                result = "conflict"
            with outcomes_lock:
                outcomes.append(result)

        threads = [
            threading.Thread(target=submit, args=(match.player1_id if i % 2 else match.player2_id,))
            for i in range(8)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        winners = [o for o in outcomes if o != "conflict"]
        assert len(winners) == 1
        assert outcomes.count("conflict") == 7
        stored = repository.get_match(match.id)
        assert stored.winner_id == winners[0]
        next_match = repository.get_match(match.next_match_id)
        assert next_match.player1_id == winners[0]

    def test_lost_compare_and_set_on_this_match_is_already_recorded(self):
        repository = MagicMock(spec=TournamentRepository)
        repository.get_match.return_value = MatchModel(id="m-1", tournament_id="t-1", round_number=1, match_number=1)
        repository.transaction.side_effect = ConcurrentUpdate("Match m-1 was modified concurrently.", match_id="m-1")
        service = MatchService(repository, AdvancementService(MagicMock(spec=Notifier)))

        with pytest.raises(AlreadyRecorded):
            service.record_result("m-1", "p1", None, ORGANIZER_ID)

    def test_conflict_elsewhere_is_not_already_recorded(self):
        repository = MagicMock(spec=TournamentRepository)
        repository.get_match.return_value = MatchModel(id="m-1", tournament_id="t-1", round_number=1, match_number=1)
        repository.transaction.side_effect = ConcurrentUpdate("Tournament t-1 was modified concurrently.")
        service = MatchService(repository, AdvancementService(MagicMock(spec=Notifier)))

        with pytest.raises(ConcurrentUpdate) as exc_info:
            service.record_result("m-1", "p1", None, ORGANIZER_ID)
        assert not isinstance(exc_info.value, AlreadyRecorded)


class TestMatchServiceCompletion:

    def test_single_elimination_completes(self, started_tournament, match_service, repository, mock_notifier):
        tournament = started_tournament(4)

        play_all(match_service, repository, tournament.id)

        finished = repository.get_tournament(tournament.id)
        assert finished.status == TournamentStatus.COMPLETED
        assert finished.champion_id == "p1"
        final = max(repository.list_matches(tournament.id), key=lambda m: m.round_number)
        assert final.match_number == 1 and final.winner_id == finished.champion_id
        won = [c.args for c in mock_notifier.notify.call_args_list if c.args[1] == NotificationEvent.TOURNAMENT_WON]
        assert [args[0] for args in won] == ["p1"]

    def test_not_completed_while_matches_remain(self, started_tournament, match_service, repository):
        tournament = started_tournament(4)
        match = first_playable(repository, tournament.id)

        match_service.record_result(match.id, "p1", None, ORGANIZER_ID)

        assert repository.get_tournament(tournament.id).status == TournamentStatus.IN_PROGRESS

    def test_final_ranks_are_stored(self, started_tournament, match_service, repository):
        tournament = started_tournament(4)

        play_all(match_service, repository, tournament.id)

        ranks = {p.user_id: p.final_rank for p in repository.list_participants(tournament.id)}
        assert ranks == {"p1": 1, "p3": 2, "p2": 3, "p4": 3}

    @pytest.mark.parametrize("count", [3, 5, 6])
    def test_double_elimination_completes(self, started_tournament, match_service, repository, count):
        tournament = started_tournament(count, tournament_type=TournamentType.DOUBLE_ELIMINATION)

        play_all(match_service, repository, tournament.id, pick=lambda m: m.player2_id)

        finished = repository.get_tournament(tournament.id)
        grand_final = next(
            m for m in repository.list_matches(tournament.id) if m.bracket_side == BracketSide.GRAND_FINAL
        )
        assert finished.status == TournamentStatus.COMPLETED
        assert finished.champion_id == grand_final.winner_id

    def test_round_robin_completes(self, started_tournament, match_service, repository):
        tournament = started_tournament(4, tournament_type=TournamentType.ROUND_ROBIN)

        play_all(match_service, repository, tournament.id)

        finished = repository.get_tournament(tournament.id)
        assert finished.status == TournamentStatus.COMPLETED
        assert finished.champion_id == "p1"

    def test_champion_notification_failure_keeps_result(self, started_tournament, match_service, repository,
                                                        mock_notifier):
        tournament = started_tournament(2)
        mock_notifier.notify.side_effect = ConnectionError("push service down")
        (final,) = repository.list_matches(tournament.id)

        match_service.record_result(final.id, "p2", "7-6 7-6", ORGANIZER_ID)

        finished = repository.get_tournament(tournament.id)
        assert finished.status == TournamentStatus.COMPLETED
        assert finished.champion_id == "p2"


class TestMatchServiceGetMatch:

    def test_get_match(self, started_tournament, match_service, repository):
        tournament = started_tournament(2)
        (final,) = repository.list_matches(tournament.id)

        assert match_service.get_match(final.id).id == final.id

    def test_get_unknown_match(self, match_service):
        with pytest.raises(NotFound):
            match_service.get_match("missing")
