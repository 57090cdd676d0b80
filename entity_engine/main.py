import asyncio
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
import redis.asyncio as redis
from fastapi import FastAPI
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from dashboard_shared.constants import Environment
from dashboard_shared.utils.retry import retry_async
from entity_engine.api.router import api_router
from entity_engine.core.config import settings
from entity_engine.core.logger import configure_logging, get_logger
from entity_engine.core.tracing import configure_tracing
from entity_engine.infrastructure.store.backends import (
    BlobBackend,
    FileBlobBackend,
    RedisBlobBackend,
)
from entity_engine.services.engine import EntityEngine

configure_logging()
logger = get_logger("entity_engine.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "entity_engine_starting",
        extra={"record_store_backend": settings.record_store_backend},
    )
    app.state.ready_event = asyncio.Event()
    app.state.tracer_provider = configure_tracing() if settings.tracing_enabled else None
    app.state.redis = None
    if settings.record_store_backend == "redis":
        app.state.redis = await _init_redis_with_retry()
        blob_backend: BlobBackend = RedisBlobBackend(
            app.state.redis, settings.record_store_key
        )
    else:
        blob_backend = FileBlobBackend(Path(settings.record_store_file_path))

    http = httpx.AsyncClient(
        base_url=settings.backend_base_url,
        timeout=settings.backend_timeout_seconds,
    )
    app.state.engine = EntityEngine.from_settings(settings, http, blob_backend)
    app.state.ready_event.set()
    try:
        yield
    finally:
        logger.info("entity_engine_stopping")
        await app.state.engine.close()
        if app.state.redis is not None:
            await app.state.redis.close()
        if app.state.tracer_provider is not None:
            app.state.tracer_provider.shutdown()


app = FastAPI(
    title="Entity Resolution & Aggregation Engine",
    version="0.1.0",
    lifespan=lifespan,
    docs_url=None if Environment.is_production(settings.app_environment) else "/docs",
    redoc_url=None,
)
app.include_router(api_router)


async def _init_redis_with_retry():
    async def _connect():
        r = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db,
            decode_responses=True,
        )
        await r.ping()
        return r

    async def _on_retry(attempt: int, exc: BaseException, sleep_for: float):
        logger.warning(
            "redis_connect_retry",
            extra={
                "attempt": attempt,
                "error": str(exc),
                "sleep_for": round(sleep_for, 2),
            },
        )

    r = await retry_async(
        _connect,
        retries=6,
        base_delay=0.5,
        max_delay=8.0,
        jitter=0.2,
        on_retry=_on_retry,
    )
    logger.info("redis_connected")
    return r


@app.get("/metrics")
async def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
