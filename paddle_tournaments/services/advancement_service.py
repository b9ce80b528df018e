"""Advancement Propagator.

Moves the winner (and, in double elimination, the loser) of a completed match
into the addressed slot of the downstream match, auto-completes matches that
can no longer receive two players, and detects tournament completion.

The functions operating on a bracket take ``Dict[match id, MatchModel]`` and
mutate it in place; they never touch storage, so the generator can use them to
settle byes and the recorder can run them inside a store transaction.
"""
import logging
from collections import deque
from typing import Dict, List, Optional, Tuple

from paddle_tournaments.models.bracket_model import BracketSide, MatchModel, MatchStatus
from paddle_tournaments.models.tournament_model import TournamentModel, TournamentStatus, TournamentType
from paddle_tournaments.repositories.base import TournamentState, sort_matches
from paddle_tournaments.services.notification_service import NotificationEvent, Notifier, notify_safely
from paddle_tournaments.services.participant_service import compute_standings

logger = logging.getLogger(__name__)

Bracket = Dict[str, MatchModel]


def feeder_slot(match_number: int) -> int:
    """Slot a match's winner takes downstream: odd position in its round -> 1, even -> 2."""
    return 1 if match_number % 2 == 1 else 2


def _linked(bracket: Bracket, match_id: str, source: MatchModel) -> MatchModel:
    target = bracket.get(match_id)
    if target is None:
        raise RuntimeError(
            f"Consistency error: match {source.id} links to {match_id}, which is not in the bracket."
        )
    return target


def feeders(bracket: Bracket, match: MatchModel) -> List[Tuple[MatchModel, int]]:
    """Upstream matches whose winner or loser is routed into ``match``, with the slot they fill."""
    found = []
    for candidate in bracket.values():
        if candidate.next_match_id == match.id:
            found.append((candidate, candidate.next_slot or feeder_slot(candidate.match_number)))
        if candidate.loser_next_match_id == match.id:
            found.append((candidate, candidate.loser_next_slot or feeder_slot(candidate.match_number)))
    return found


def _resolve_walkover(bracket: Bracket, match: MatchModel) -> bool:
    """Complete ``match`` if every feeder is done but fewer than two players arrived."""
    if match.is_completed or len(match.players()) == 2:
        return False
    if any(not feeder.is_completed for feeder, _ in feeders(bracket, match)):
        return False

    match.status = MatchStatus.COMPLETED
    match.is_bye = True
    players = match.players()
    if players:
        match.winner_id = players[0]
        match.winner_team_ids = match.team_of(players[0])
    logger.debug(
        "Match %s (%s round %s #%s) resolved as a bye, winner %s",
        match.id, match.bracket_side.value, match.round_number, match.match_number, match.winner_id,
    )
    return True


def advance(bracket: Bracket, match: MatchModel) -> List[MatchModel]:
    """Propagate a completed match downstream. Returns every downstream match that changed."""
    if not match.is_completed:
        raise RuntimeError(f"Match {match.id} is not completed and cannot be advanced.")

    touched: List[MatchModel] = []
    pending = deque([match])
    while pending:
        current = pending.popleft()
        targets = []

        if current.next_match_id:
            target = _linked(bracket, current.next_match_id, current)
            if current.winner_id:
                slot = current.next_slot or feeder_slot(current.match_number)
                target.fill_slot(slot, current.winner_id, current.winner_team_ids)
            targets.append(target)

        if current.loser_next_match_id:
            target = _linked(bracket, current.loser_next_match_id, current)
            loser_id = current.loser_id()
            if loser_id:
                slot = current.loser_next_slot or feeder_slot(current.match_number)
                target.fill_slot(slot, loser_id, current.team_of(loser_id))
            targets.append(target)

        for target in targets:
            touched.append(target)
            if _resolve_walkover(bracket, target):
                pending.append(target)
    return touched


def resolve_byes(bracket: Bracket) -> None:
    """Advance the byes created at generation time, cascading any walkovers they cause."""
    for match in sort_matches([m for m in bracket.values() if m.is_completed]):
        advance(bracket, match)


def final_match(tournament_type: TournamentType, matches: List[MatchModel]) -> Optional[MatchModel]:
    """The match whose winner is champion: match 1 of the last round, or the grand final."""
    if not matches:
        return None
    if tournament_type == TournamentType.DOUBLE_ELIMINATION:
        return next((m for m in matches if m.bracket_side == BracketSide.GRAND_FINAL), None)
    main_side = [m for m in matches if m.bracket_side == BracketSide.WINNERS]
    last_round = max(m.round_number for m in main_side)
    return next(m for m in main_side if m.round_number == last_round and m.match_number == 1)


class AdvancementService:

    def __init__(self, notifier: Notifier):
        self.notifier = notifier

    def propagate(self, state: TournamentState, match: MatchModel) -> Optional[str]:
        """Advance ``match`` inside ``state``; returns the champion id if the tournament just completed."""
        advance(state.matches, match)
        return self.check_completion(state)

    def check_completion(self, state: TournamentState) -> Optional[str]:
        tournament = state.tournament
        matches = list(state.matches.values())
        if tournament.status != TournamentStatus.IN_PROGRESS or not matches:
            return None
        if not all(m.is_completed for m in matches):
            return None

        standings = compute_standings(tournament.type, state.participants, matches)
        final = final_match(tournament.type, matches)
        champion_id = final.winner_id if final is not None else None

        tournament.status = TournamentStatus.COMPLETED
        tournament.champion_id = champion_id
        by_user = {s.user_id: s for s in standings}
        for participant in state.participants:
            standing = by_user.get(participant.user_id)
            if standing is None:
                continue
            participant.eliminated = standing.eliminated
            participant.final_rank = standing.rank
        logger.info("Tournament %s completed, champion %s", tournament.id, champion_id)
        return champion_id

    def announce_champion(self, tournament: TournamentModel, team_ids: List[str]) -> None:
        for user_id in team_ids:
            notify_safely(
                self.notifier,
                user_id,
                NotificationEvent.TOURNAMENT_WON,
                {"tournament_id": tournament.id, "tournament_name": tournament.name},
            )
