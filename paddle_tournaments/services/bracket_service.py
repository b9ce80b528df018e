"""Bracket Generator.

``generate`` turns an ordered entry list into the full match graph of a
tournament. It is pure: nothing is read from or written to storage, and the
same input (and id factory) always yields the same graph.
"""
import logging
from typing import Callable, Dict, List
from uuid import uuid4

from paddle_tournaments.core.exceptions import ValidationError
from paddle_tournaments.models.bracket_model import BracketModel, BracketSide, MatchModel, MatchStatus
from paddle_tournaments.models.tournament_model import ParticipantModel, TournamentType
from paddle_tournaments.repositories.base import sort_matches
from paddle_tournaments.services.advancement_service import feeder_slot, resolve_byes

logger = logging.getLogger(__name__)

IdFactory = Callable[[], str]


def _new_id() -> str:
    return str(uuid4())


def _ceil_half(value: int) -> int:
    return (value + 1) // 2


def _link(source: MatchModel, target: MatchModel, slot: int) -> None:
    source.next_match_id = target.id
    source.next_slot = slot


def _link_loser(source: MatchModel, target: MatchModel, slot: int) -> None:
    source.loser_next_match_id = target.id
    source.loser_next_slot = slot


def _empty_round(tournament_id: str, side: BracketSide, round_number: int, count: int,
                 new_id: IdFactory) -> List[MatchModel]:
    return [
        MatchModel(
            id=new_id(),
            tournament_id=tournament_id,
            bracket_side=side,
            round_number=round_number,
            match_number=i + 1,
        )
        for i in range(count)
    ]


def _elimination_rounds(tournament_id: str, entrants: List[ParticipantModel],
                        new_id: IdFactory) -> List[List[MatchModel]]:
    """Single-elimination rounds, linked winner -> next round. Index 0 is round 1."""
    n = len(entrants)
    total_rounds = (n - 1).bit_length() # ceil(log2(n)) without float rounding
    first_round_matches = _ceil_half(n)

    first_round = []
    for i in range(first_round_matches):
        player1 = entrants[2 * i]
        player2 = entrants[2 * i + 1] if 2 * i + 1 < n else None
        match = MatchModel(
            id=new_id(),
            tournament_id=tournament_id,
            round_number=1,
            match_number=i + 1,
            player1_id=player1.user_id,
            team1_ids=player1.team_ids,
        )
        if player2 is not None:
            match.player2_id = player2.user_id
            match.team2_ids = player2.team_ids
        else:
            # Odd field: the last entrant advances without playing
            match.status = MatchStatus.COMPLETED
            match.is_bye = True
            match.winner_id = player1.user_id
            match.winner_team_ids = player1.team_ids
        first_round.append(match)

    rounds = [first_round]
    for round_number in range(2, total_rounds + 1):
        count = _ceil_half(len(rounds[-1]))
        rounds.append(_empty_round(tournament_id, BracketSide.WINNERS, round_number, count, new_id))

    for current, following in zip(rounds, rounds[1:]):
        for i, match in enumerate(current):
            _link(match, following[i // 2], feeder_slot(match.match_number))
    return rounds


def _losers_bracket(tournament_id: str, winners: List[List[MatchModel]],
                    new_id: IdFactory) -> List[MatchModel]:
    """Thread winners-side losers into a losers bracket and merge both into a grand final."""
    losers_rounds: List[List[MatchModel]] = []

    def add_round(count: int) -> List[MatchModel]:
        matches = _empty_round(tournament_id, BracketSide.LOSERS, len(losers_rounds) + 1, count, new_id)
        losers_rounds.append(matches)
        return matches

    # Round 1 pairs off the first-round losers
    previous = add_round(_ceil_half(len(winners[0])))
    for i, match in enumerate(winners[0]):
        _link_loser(match, previous[i // 2], feeder_slot(match.match_number))

    total_rounds = len(winners)
    for round_index in range(1, total_rounds):
        dropping = winners[round_index]
        drop_round = add_round(len(dropping))
        if len(previous) != len(drop_round):
            raise RuntimeError("Losers bracket is out of step with the winners bracket.")
        for i, match in enumerate(dropping):
            _link_loser(match, drop_round[i], 1)
        for i, match in enumerate(previous):
            _link(match, drop_round[i], 2)
        previous = drop_round

        if round_index + 1 < total_rounds:
            pairing = add_round(_ceil_half(len(drop_round)))
            for i, match in enumerate(drop_round):
                _link(match, pairing[i // 2], feeder_slot(match.match_number))
            previous = pairing

    grand_final = MatchModel(
        id=new_id(),
        tournament_id=tournament_id,
        bracket_side=BracketSide.GRAND_FINAL,
        round_number=1,
        match_number=1,
    )
    _link(winners[-1][0], grand_final, 1)
    _link(previous[0], grand_final, 2)
    return [m for matches in losers_rounds for m in matches] + [grand_final]


def _round_robin(tournament_id: str, entrants: List[ParticipantModel], new_id: IdFactory) -> List[MatchModel]:
    matches = []
    for i, first in enumerate(entrants):
        for second in entrants[i + 1:]:
            matches.append(MatchModel(
                id=new_id(),
                tournament_id=tournament_id,
                round_number=1,
                match_number=len(matches) + 1,
                player1_id=first.user_id,
                team1_ids=first.team_ids,
                player2_id=second.user_id,
                team2_ids=second.team_ids,
            ))
    return matches


def generate(
    tournament_type: TournamentType,
    participants: List[ParticipantModel],
    tournament_id: str,
    id_factory: IdFactory = _new_id,
) -> List[MatchModel]:
    """Build every match of the bracket, in the order given by ``participants``.

    Byes are already advanced in the returned graph, including any later
    match they leave without an opponent.
    """
    if len(participants) < 2:
        raise ValidationError("A bracket needs at least two participants.")

    if tournament_type == TournamentType.ROUND_ROBIN:
        matches = _round_robin(tournament_id, participants, id_factory)
    else:
        winners = _elimination_rounds(tournament_id, participants, id_factory)
        matches = [m for matches_in_round in winners for m in matches_in_round]
        if tournament_type == TournamentType.DOUBLE_ELIMINATION:
            matches += _losers_bracket(tournament_id, winners, id_factory)

    bracket = {m.id: m for m in matches}
    if len(bracket) != len(matches):
        raise RuntimeError("Match id factory produced duplicate ids.")
    resolve_byes(bracket)

    logger.info(
        "Generated %s bracket for tournament %s: %d entries, %d matches",
        tournament_type.value, tournament_id, len(participants), len(matches),
    )
    return sort_matches(matches)


def build_bracket_view(tournament_id: str, tournament_type: TournamentType,
                       matches: List[MatchModel]) -> BracketModel:
    """Group matches by side and round for display."""
    ordered = sort_matches(matches)
    rounds_structure: Dict[str, Dict[int, List[str]]] = {}
    for match in ordered:
        side = rounds_structure.setdefault(match.bracket_side.value, {})
        side.setdefault(match.round_number, []).append(match.id)
    winners_rounds = rounds_structure.get(BracketSide.WINNERS.value, {})
    return BracketModel(
        tournament_id=tournament_id,
        tournament_type=tournament_type.value,
        matches=ordered,
        rounds_structure=rounds_structure,
        total_rounds=max(winners_rounds.keys(), default=0),
    )
