from datetime import date

from fastapi import APIRouter, Depends, Query

from entity_engine.api.dependencies import get_engine
from entity_engine.api.params import parse_ids, parse_range
from entity_engine.core.config import settings
from entity_engine.domain.models import AggregateQuery, Metric
from entity_engine.domain.ranking import top_n
from entity_engine.services.engine import EntityEngine

router = APIRouter(prefix="/v1")


@router.get("/aggregate")
async def aggregate(
    ids: str = Query(..., description="Comma-separated entity ids"),
    metric: Metric = Query(...),
    start: date = Query(...),
    end: date = Query(...),
    concurrency: int | None = Query(None, ge=1, le=50),
    limit: int = Query(10, ge=1, le=1000),
    engine: EntityEngine = Depends(get_engine),
):
    query = AggregateQuery(
        entity_ids=parse_ids(ids),
        metric=metric,
        date_range=parse_range(start, end),
        concurrency=concurrency or settings.aggregate_concurrency,
    )
    outcome = await engine.aggregate_detailed(
        query.entity_ids, query.metric, query.date_range, query.concurrency
    )
    return {
        "counts": outcome.counts,
        "partial": outcome.partial,
        "failed": sorted(outcome.failed),
        "top": [r.model_dump() for r in top_n(outcome.counts, limit)],
    }
