from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query

from entity_engine.api.dependencies import get_leaderboard_service
from entity_engine.api.params import parse_range
from entity_engine.core.config import settings
from entity_engine.core.exceptions import EntityListingError
from entity_engine.domain.models import Metric
from entity_engine.services.leaderboard import LeaderboardService

router = APIRouter(prefix="/v1")


@router.get("/leaderboard")
async def leaderboard(
    metric: Metric = Query(...),
    start: date = Query(...),
    end: date = Query(...),
    limit: int = Query(settings.leaderboard_default_limit, ge=1, le=1000),
    previous_start: date | None = Query(None),
    previous_end: date | None = Query(None),
    svc: LeaderboardService = Depends(get_leaderboard_service),
):
    if (previous_start is None) != (previous_end is None):
        raise HTTPException(
            status_code=400,
            detail="previous_start and previous_end must be given together",
        )
    previous = None
    if previous_start is not None and previous_end is not None:
        previous = parse_range(previous_start, previous_end)

    try:
        board = await svc.build(metric, parse_range(start, end), limit, previous)
    except EntityListingError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
    return board.model_dump(mode="json")
