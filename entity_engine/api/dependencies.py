from fastapi import Depends, Request

from entity_engine.services.engine import EntityEngine
from entity_engine.services.leaderboard import LeaderboardService


def get_engine(request: Request) -> EntityEngine:
    return request.app.state.engine  # type: ignore[return-value]


def get_leaderboard_service(
    engine: EntityEngine = Depends(get_engine),
) -> LeaderboardService:
    return LeaderboardService(engine)
