from fastapi import APIRouter, Depends, Query

from entity_engine.api.dependencies import get_engine
from entity_engine.api.params import parse_ids
from entity_engine.services.engine import EntityEngine

router = APIRouter(prefix="/v1/entities")


@router.get("/{entity_id}")
async def resolve_one(entity_id: str, engine: EntityEngine = Depends(get_engine)):
    record = await engine.resolve_one(entity_id)
    return record.to_wire()


@router.get("")
async def resolve_many(
    ids: str = Query(..., description="Comma-separated entity ids"),
    engine: EntityEngine = Depends(get_engine),
):
    outcome = await engine.resolve_many_detailed(parse_ids(ids))
    return {
        "records": {eid: r.to_wire() for eid, r in outcome.records.items()},
        "degraded": outcome.degraded,
    }
