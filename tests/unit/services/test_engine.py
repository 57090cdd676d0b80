import httpx
import pytest

from entity_engine.core.config import Settings
from entity_engine.domain.models import Record
from entity_engine.services.engine import EntityEngine
from entity_engine.utils.concurrency import CancellationToken


def test_from_settings_wires_configuration(make_blob_backend, clock):
    cfg = Settings(
        resolve_batch_size=50,
        individual_retry_limit=3,
        aggregate_concurrency=7,
        record_cache_ttl_seconds=60,
        backend_batch_path="/v2/resolve/batch",
    )
    http = httpx.AsyncClient(base_url="http://backend.test")

    engine = EntityEngine.from_settings(cfg, http, make_blob_backend(), clock)

    assert engine.resolver.batch_size == 50
    assert engine.resolver.retry_limit == 3
    assert engine.aggregator.default_concurrency == 7
    assert engine.store.ttl_ms == 60_000
    assert engine.client.batch_path == "/v2/resolve/batch"
    assert engine.client.batch_limit == 50


def test_new_session_returns_fresh_token():
    a = EntityEngine.new_session()
    b = EntityEngine.new_session()

    assert isinstance(a, CancellationToken)
    a.cancel()
    assert a.cancelled and not b.cancelled


@pytest.mark.asyncio
async def test_engine_shares_store_across_consumers(engine, backend):
    """Two panels resolving the same id hit the network once."""
    backend.add("U1", "Alice")

    panel_a = await engine.resolve_many(["U1"])
    panel_b = await engine.resolve_one("U1")

    assert panel_a["U1"] == panel_b == Record(display_name="Alice")
    assert backend.calls["batch"] + backend.calls["single"] == 1


@pytest.mark.asyncio
async def test_healthy_reflects_store(engine, blob_backend):
    assert await engine.healthy() is True
    blob_backend.fail_save = True
    assert await engine.healthy() is False


@pytest.mark.asyncio
async def test_close_closes_http_client(engine):
    await engine.close()
    assert engine.client.http.is_closed
