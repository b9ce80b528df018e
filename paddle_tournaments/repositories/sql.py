import logging
from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel
from sqlalchemy import func, or_
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from paddle_tournaments.core.database import SQLITE_IMMEDIATE, Base
from paddle_tournaments.core.exceptions import ConcurrentUpdate, NotFound
from paddle_tournaments.core.timeutils import utcnow
from paddle_tournaments.models import match as match_model
from paddle_tournaments.models import participant as participant_model
from paddle_tournaments.models import tournament as tournament_model
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

Tournament = tournament_model.Tournament
Participant = participant_model.Participant
Match = match_model.Match


def init_db(engine: Engine) -> None:
    Base.metadata.create_all(bind=engine)


def _column_values(model: BaseModel, exclude: Optional[set] = None) -> Dict[str, Any]:
    values = model.model_dump(exclude=exclude)
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in values.items()}


class SqlTournamentRepository(TournamentRepository):
    """SQLAlchemy store.

    ``transaction`` takes the write lock before it reads: ``SELECT ... FOR
    UPDATE`` on the tournament row, or ``BEGIN IMMEDIATE`` on SQLite. A
    second writer therefore reads the state the first one committed. The
    commit still goes through compare-and-set updates on
    ``tournaments.version`` and on each changed match's status, so a writer
    that got past the lock fails with ``ConcurrentUpdate`` instead of
    overwriting.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        finally:
            session.close()

    def create_tournament(self, tournament: TournamentModel) -> TournamentModel:
        with self._session() as db:
            db.add(Tournament(**_column_values(tournament)))
            db.commit()
        return tournament

    def get_tournament(self, tournament_id: str) -> Optional[TournamentModel]:
        with self._session() as db:
            row = db.query(Tournament).filter(Tournament.id == tournament_id).first()
            return TournamentModel.model_validate(row) if row else None

    def search_tournaments(self, filters: TournamentFilters) -> Tuple[List[TournamentModel], int]:
        with self._session() as db:
            counts = db.query(
                Participant.tournament_id,
                func.count(Participant.id).label("entries"),
            ).group_by(Participant.tournament_id).subquery()

            query = db.query(Tournament).outerjoin(counts, counts.c.tournament_id == Tournament.id)
            if filters.status:
                query = query.filter(Tournament.status == filters.status.value)
            if filters.type:
                query = query.filter(Tournament.type == filters.type.value)
            if filters.format:
                query = query.filter(Tournament.format == filters.format.value)
            if filters.organizer_id:
                query = query.filter(Tournament.organizer_id == filters.organizer_id)
            if filters.start_date:
                query = query.filter(Tournament.start_date >= filters.start_date)
            if filters.end_date:
                query = query.filter(Tournament.end_date <= filters.end_date)
            if filters.has_spots:
                query = query.filter(func.coalesce(counts.c.entries, 0) < Tournament.max_participants)

            total = query.count()
            rows = query.order_by(Tournament.start_date)\
                .offset((filters.page - 1) * filters.limit)\
                .limit(filters.limit)\
                .all()
            return [TournamentModel.model_validate(r) for r in rows], total

    def list_user_tournaments(self, user_id: str) -> List[TournamentModel]:
        with self._session() as db:
            rows = db.query(Tournament).outerjoin(
                Participant,
                (Participant.tournament_id == Tournament.id) &
                or_(Participant.user_id == user_id, Participant.partner_id == user_id)
            ).filter(
                or_(
                    Tournament.organizer_id == user_id,
                    Participant.id.isnot(None),
                )
            ).distinct().order_by(Tournament.start_date.desc()).all()
            return [TournamentModel.model_validate(r) for r in rows]

    def list_participants(self, tournament_id: str) -> List[ParticipantModel]:
        with self._session() as db:
            rows = db.query(Participant).filter(Participant.tournament_id == tournament_id).all()
            return sort_participants([ParticipantModel.model_validate(r) for r in rows])

    def count_participants(self, tournament_id: str) -> int:
        with self._session() as db:
            return db.query(Participant).filter(Participant.tournament_id == tournament_id).count()

    def get_match(self, match_id: str) -> Optional[MatchModel]:
        with self._session() as db:
            row = db.query(Match).filter(Match.id == match_id).first()
            return MatchModel.model_validate(row) if row else None

    def list_matches(self, tournament_id: str) -> List[MatchModel]:
        with self._session() as db:
            rows = db.query(Match).filter(Match.tournament_id == tournament_id).all()
            return sort_matches([MatchModel.model_validate(r) for r in rows])

    @contextmanager
    def transaction(self, tournament_id: str) -> Iterator[TournamentState]:
        db = self._session_factory()
        try:
            db.connection(execution_options={SQLITE_IMMEDIATE: True})
            row = db.query(Tournament).filter(Tournament.id == tournament_id).with_for_update().first()
            if row is None:
                raise NotFound(f"Tournament {tournament_id} not found.")
            original = TournamentState(
                tournament=TournamentModel.model_validate(row),
                participants=[
                    ParticipantModel.model_validate(p)
                    for p in db.query(Participant).filter(Participant.tournament_id == tournament_id).all()
                ],
                matches={
                    m.id: MatchModel.model_validate(m)
                    for m in db.query(Match).filter(Match.tournament_id == tournament_id).all()
                },
            )
            working = original.copy()
            yield working
            self._persist(db, original, working)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _persist(self, db: Session, original: TournamentState, working: TournamentState) -> None:
        if working.tournament == original.tournament and working.participants == original.participants \
                and working.matches == original.matches:
            return

        tournament = working.tournament
        tournament.version = original.tournament.version + 1
        tournament.updated_at = utcnow()
        updated = db.query(Tournament).filter(
            Tournament.id == tournament.id,
            Tournament.version == original.tournament.version,
        ).update(_column_values(tournament, exclude={"id", "created_at"}), synchronize_session=False)
        if updated == 0:
            raise ConcurrentUpdate(f"Tournament {tournament.id} was modified concurrently.")

        before = {p.id: p for p in original.participants}
        after = {p.id: p for p in working.participants}
        for participant_id in before.keys() - after.keys():
            db.query(Participant).filter(Participant.id == participant_id).delete(synchronize_session=False)
        for participant_id, participant in after.items():
            if participant_id not in before:
                db.add(Participant(**_column_values(participant)))
            elif participant != before[participant_id]:
                db.query(Participant).filter(Participant.id == participant_id)\
                    .update(_column_values(participant, exclude={"id"}), synchronize_session=False)

        for match_id, match in working.matches.items():
            previous = original.matches.get(match_id)
            if previous is None:
                db.add(Match(**_column_values(match)))
            elif match != previous:
                changed = db.query(Match).filter(
                    Match.id == match_id,
                    Match.status == previous.status.value,
                ).update(_column_values(match, exclude={"id"}), synchronize_session=False)
                if changed == 0:
                    raise ConcurrentUpdate(f"Match {match_id} was modified concurrently.", match_id=match_id)
        db.flush()
        logger.debug("Persisted tournament %s at version %s", tournament.id, tournament.version)
