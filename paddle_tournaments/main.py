import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from paddle_tournaments.api.endpoints import matches as match_endpoints
from paddle_tournaments.api.endpoints import tournaments as tournament_endpoints
from paddle_tournaments.core.config import settings
from paddle_tournaments.core.database import SessionLocal, engine
from paddle_tournaments.core.exceptions import TournamentError
from paddle_tournaments.core.logging import configure_logging
from paddle_tournaments.repositories import (
    InMemoryTournamentRepository,
    SqlTournamentRepository,
    TournamentRepository,
    init_db,
)
from paddle_tournaments.services.advancement_service import AdvancementService
from paddle_tournaments.services.match_service import MatchService
from paddle_tournaments.services.notification_service import LoggingNotifier, Notifier, SqlNotifier
from paddle_tournaments.services.participant_service import ParticipantService
from paddle_tournaments.services.tournament_service import TournamentService
from paddle_tournaments.services.user_service import SqlUserDirectory, UserDirectory

logger = logging.getLogger(__name__)


async def tournament_error_handler(request: Request, exc: TournamentError) -> JSONResponse:
    logger.info("%s %s rejected: %s (%s)", request.method, request.url.path, exc.message, exc.code)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


def create_app(
    repository: Optional[TournamentRepository] = None,
    notifier: Optional[Notifier] = None,
    user_directory: Optional[UserDirectory] = None,
) -> FastAPI:
    """Wire services onto a new app. Anything not passed in is chosen from settings."""
    configure_logging(settings.LOG_LEVEL)

    use_sql = repository is None and settings.STORAGE_BACKEND == "sql"
    if repository is None:
        repository = SqlTournamentRepository(SessionLocal) if use_sql else InMemoryTournamentRepository()
    if notifier is None:
        notifier = SqlNotifier(SessionLocal) if use_sql else LoggingNotifier()
    if user_directory is None and use_sql:
        user_directory = SqlUserDirectory(SessionLocal)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if use_sql:
            init_db(engine)
        yield

    app = FastAPI(title="Paddle Tournaments API", lifespan=lifespan)
    app.state.tournament_service = TournamentService(repository, notifier)
    app.state.participant_service = ParticipantService(repository, notifier, user_directory)
    app.state.match_service = MatchService(repository, AdvancementService(notifier))

    app.add_exception_handler(TournamentError, tournament_error_handler)
    app.include_router(tournament_endpoints.router, prefix="/tournaments", tags=["Tournaments"])
    app.include_router(match_endpoints.router, prefix="/matches", tags=["Matches"])
    logger.info("App created with %s storage", type(repository).__name__)
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("paddle_tournaments.main:app", host="0.0.0.0", port=8000, reload=False)
