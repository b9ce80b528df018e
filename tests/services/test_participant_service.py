import threading
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from conftest import ORGANIZER_ID, make_entrants, tournament_data
from paddle_tournaments.core.exceptions import (
    AlreadyRegistered,
    DeadlinePassed,
    InvalidStateTransition,
    NotFound,
    RegistrationClosed,
    TournamentFull,
    Unauthorized,
    ValidationError,
)
from paddle_tournaments.core.timeutils import utcnow
from paddle_tournaments.models.bracket_model import BracketSide, MatchStatus
from paddle_tournaments.models.tournament_model import TournamentFormat, TournamentType
from paddle_tournaments.services.bracket_service import generate
from paddle_tournaments.services.notification_service import NotificationEvent
from paddle_tournaments.services.participant_service import ParticipantService, compute_standings
from paddle_tournaments.services.user_service import InMemoryUserDirectory, UserDirectory, UserProfile


class TestParticipantServiceRegister:

    def test_register(self, open_tournament, participant_service, repository):
        tournament = open_tournament()

        participant = participant_service.register(tournament.id, "p1")

        assert participant.user_id == "p1"
        assert participant.tournament_id == tournament.id
        assert repository.count_participants(tournament.id) == 1

    def test_register_notifies_player(self, open_tournament, participant_service, mock_notifier):
        tournament = open_tournament()

        participant_service.register(tournament.id, "p1")

        user_id, event, payload = mock_notifier.notify.call_args.args
        assert (user_id, event) == ("p1", NotificationEvent.TOURNAMENT_REGISTRATION)
        assert payload["tournament_id"] == tournament.id

    def test_notification_failure_keeps_registration(self, open_tournament, participant_service,
                                                     mock_notifier, repository):
        tournament = open_tournament()
        mock_notifier.notify.side_effect = RuntimeError("push service down")

        participant_service.register(tournament.id, "p1")

        assert repository.count_participants(tournament.id) == 1

    def test_register_in_draft_fails(self, tournament_service, participant_service):
        tournament = tournament_service.create_tournament(tournament_data(), ORGANIZER_ID)

        with pytest.raises(RegistrationClosed, match="not open"):
            participant_service.register(tournament.id, "p1")

    def test_register_after_deadline_fails(self, open_tournament, repository, mock_notifier):
        tournament = open_tournament()
        late = ParticipantService(repository, mock_notifier, clock=lambda: utcnow() + timedelta(days=8))

        with pytest.raises(DeadlinePassed):
            late.register(tournament.id, "p1")

    def test_deadline_is_a_registration_closed_error(self):
        assert issubclass(DeadlinePassed, RegistrationClosed)

    def test_register_twice_fails(self, open_tournament, participant_service):
        tournament = open_tournament()
        participant_service.register(tournament.id, "p1")

        with pytest.raises(AlreadyRegistered):
            participant_service.register(tournament.id, "p1")

    def test_unknown_tournament(self, participant_service):
        with pytest.raises(NotFound):
            participant_service.register("missing", "p1")

    def test_twenty_first_entry_is_rejected(self, open_tournament, participant_service):
        tournament = open_tournament(max_participants=20)
        for i in range(20):
            participant_service.register(tournament.id, f"p{i}")

        with pytest.raises(TournamentFull):
            participant_service.register(tournament.id, "p20")

    def test_capacity_holds_under_concurrent_registration(self, open_tournament, participant_service, repository):
        tournament = open_tournament(max_participants=20)
        barrier = threading.Barrier(30)
        outcomes = []
        outcomes_lock = threading.Lock()

        def attempt(user_id):
            barrier.wait()
            try:
                participant_service.register(tournament.id, user_id)
                result = "ok"
            except TournamentFull:
                result = "full"
            with outcomes_lock:
                outcomes.append(result)

        threads = [threading.Thread(target=attempt, args=(f"p{i}",)) for i in range(30)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert outcomes.count("ok") == 20
        assert outcomes.count("full") == 10
        assert repository.count_participants(tournament.id) == 20


class TestParticipantServiceDoubles:

    def test_team_entry(self, open_tournament, participant_service):
        tournament = open_tournament(tournament_format=TournamentFormat.DOUBLES)

        entry = participant_service.register(tournament.id, "a1", partner_id="a2")

        assert entry.team_ids == ["a1", "a2"]

    def test_partner_required(self, open_tournament, participant_service):
        tournament = open_tournament(tournament_format=TournamentFormat.MIXED_DOUBLES)

        with pytest.raises(ValidationError, match="needs a partner"):
            participant_service.register(tournament.id, "a1")

    def test_cannot_partner_self(self, open_tournament, participant_service):
        tournament = open_tournament(tournament_format=TournamentFormat.DOUBLES)

        with pytest.raises(ValidationError):
            participant_service.register(tournament.id, "a1", partner_id="a1")

    def test_partner_already_entered(self, open_tournament, participant_service):
        tournament = open_tournament(tournament_format=TournamentFormat.DOUBLES)
        participant_service.register(tournament.id, "a1", partner_id="a2")

        with pytest.raises(AlreadyRegistered, match="a2"):
            participant_service.register(tournament.id, "b1", partner_id="a2")

    def test_singles_reject_partner(self, open_tournament, participant_service):
        tournament = open_tournament()

        with pytest.raises(ValidationError):
            participant_service.register(tournament.id, "a1", partner_id="a2")

    def test_both_members_are_notified(self, open_tournament, participant_service, mock_notifier):
        tournament = open_tournament(tournament_format=TournamentFormat.DOUBLES)

        participant_service.register(tournament.id, "a1", partner_id="a2")

        notified = [c.args[0] for c in mock_notifier.notify.call_args_list]
        assert notified == ["a1", "a2"]

    def test_partner_can_withdraw_the_team(self, open_tournament, participant_service, repository):
        tournament = open_tournament(tournament_format=TournamentFormat.DOUBLES)
        participant_service.register(tournament.id, "a1", partner_id="a2")

        participant_service.unregister(tournament.id, "a2")

        assert repository.count_participants(tournament.id) == 0


class TestParticipantServiceUnregister:

    def test_unregister(self, open_tournament, participant_service, repository):
        tournament = open_tournament()
        participant_service.register(tournament.id, "p1")

        participant_service.unregister(tournament.id, "p1")

        assert repository.list_participants(tournament.id) == []

    def test_unregister_unknown_user(self, open_tournament, participant_service):
        tournament = open_tournament()

        with pytest.raises(NotFound):
            participant_service.unregister(tournament.id, "p1")

    def test_unregister_after_close(self, closed_tournament, participant_service):
        tournament = closed_tournament(2)

        with pytest.raises(RegistrationClosed):
            participant_service.unregister(tournament.id, "p1")

    def test_unregister_in_progress(self, started_tournament, participant_service):
        tournament = started_tournament(2)

        with pytest.raises(RegistrationClosed):
            participant_service.unregister(tournament.id, "p1")


class TestParticipantServiceSeeds:

    def test_seeds_order_the_bracket(self, closed_tournament, participant_service, tournament_service, repository):
        tournament = closed_tournament(4)
        participant_service.assign_seed(tournament.id, "p4", 1, ORGANIZER_ID)
        participant_service.assign_seed(tournament.id, "p3", 2, ORGANIZER_ID)

        tournament_service.start(tournament.id, ORGANIZER_ID)

        first = [m for m in repository.list_matches(tournament.id) if m.round_number == 1]
        assert (first[0].player1_id, first[0].player2_id) == ("p4", "p3")
        # Unseeded entries follow in registration order
        assert (first[1].player1_id, first[1].player2_id) == ("p1", "p2")

    def test_only_organizer_seeds(self, closed_tournament, participant_service):
        tournament = closed_tournament(2)

        with pytest.raises(Unauthorized):
            participant_service.assign_seed(tournament.id, "p1", 1, "p2")

    def test_duplicate_seed(self, closed_tournament, participant_service):
        tournament = closed_tournament(2)
        participant_service.assign_seed(tournament.id, "p1", 1, ORGANIZER_ID)

        with pytest.raises(ValidationError, match="already taken"):
            participant_service.assign_seed(tournament.id, "p2", 1, ORGANIZER_ID)

    def test_invalid_seed(self, closed_tournament, participant_service):
        tournament = closed_tournament(2)

        with pytest.raises(ValidationError):
            participant_service.assign_seed(tournament.id, "p1", 0, ORGANIZER_ID)

    def test_clear_seed(self, closed_tournament, participant_service):
        tournament = closed_tournament(2)
        participant_service.assign_seed(tournament.id, "p1", 3, ORGANIZER_ID)

        assert participant_service.assign_seed(tournament.id, "p1", None, ORGANIZER_ID).seed is None

    def test_no_seeding_once_started(self, started_tournament, participant_service):
        tournament = started_tournament(2)

        with pytest.raises(InvalidStateTransition):
            participant_service.assign_seed(tournament.id, "p1", 1, ORGANIZER_ID)


class TestStandings:

    def test_live_single_elimination_standings(self, started_tournament, participant_service, match_service,
                                               repository):
        tournament = started_tournament(4)
        opener = repository.list_matches(tournament.id)[0]
        match_service.record_result(opener.id, "p2", "6-3 6-3", ORGANIZER_ID)

        standings = {s.user_id: s for s in participant_service.get_standings(tournament.id)}

        assert (standings["p2"].wins, standings["p2"].eliminated, standings["p2"].rank) == (1, False, None)
        # Provisional: the three entries still alive are ranked ahead
        assert (standings["p1"].losses, standings["p1"].eliminated, standings["p1"].rank) == (1, True, 4)

    def test_double_elimination_needs_two_losses(self):
        entrants = make_entrants(4)
        matches = generate(TournamentType.DOUBLE_ELIMINATION, entrants, "t-1")
        opener = next(m for m in matches if m.bracket_side == BracketSide.WINNERS and m.match_number == 1)
        opener.status = MatchStatus.COMPLETED
        opener.winner_id = "p1"

        standings = {s.user_id: s for s in compute_standings(TournamentType.DOUBLE_ELIMINATION, entrants, matches)}

        assert standings["p2"].losses == 1
        assert not standings["p2"].eliminated

    def test_round_robin_ties_go_to_better_seed(self):
        entrants = make_entrants(3)
        matches = generate(TournamentType.ROUND_ROBIN, entrants, "t-1")
        for match in matches:
            match.status = MatchStatus.COMPLETED
            match.winner_id = match.player2_id if match.match_number == 2 else match.player1_id
        # p1 beats p2, p3 beats p1, p2 beats p3: one win each

        ranking = [s.user_id for s in compute_standings(TournamentType.ROUND_ROBIN, entrants, matches)]

        assert ranking == ["p1", "p2", "p3"]

    def test_unknown_tournament(self, participant_service):
        with pytest.raises(NotFound):
            participant_service.get_standings("missing")


class TestProfiles:

    def test_profiles_for(self, repository, mock_notifier):
        directory = InMemoryUserDirectory({"p1": UserProfile(id="p1", name="Ana", skill_level="4.0")})
        service = ParticipantService(repository, mock_notifier, user_directory=directory)

        profiles = service.profiles_for(["p1", "p2", "p1"])

        assert list(profiles) == ["p1"]
        assert profiles["p1"].name == "Ana"

    def test_directory_failure_is_ignored(self, repository, mock_notifier):
        directory = MagicMock(spec=UserDirectory)
        directory.get_profile_safely.return_value = None
        service = ParticipantService(repository, mock_notifier, user_directory=directory)

        assert service.profiles_for(["p1"]) == {}

    def test_get_profile_safely_swallows_lookup_errors(self):
        class BrokenDirectory(UserDirectory):
            def get_profile(self, user_id):
                raise ConnectionError("directory unavailable")

        assert BrokenDirectory().get_profile_safely("p1") is None

    def test_no_directory(self, participant_service):
        assert participant_service.profiles_for(["p1"]) == {}
