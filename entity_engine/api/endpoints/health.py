from fastapi import APIRouter, Depends, Request, Response

from entity_engine.api.dependencies import get_engine
from entity_engine.services.engine import EntityEngine

router = APIRouter()


@router.get("/healthz")
async def healthz(engine: EntityEngine = Depends(get_engine)):
    # Store failures degrade caching only, so liveness reports them without failing.
    return {"status": "ok", "store": await engine.healthy()}


@router.get("/readyz")
async def readyz(request: Request):
    if request.app.state.ready_event.is_set():
        return {"status": "ready"}
    return Response(status_code=503, content="not ready")
