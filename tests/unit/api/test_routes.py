import asyncio

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from entity_engine.api.router import api_router


@pytest.fixture
def api(engine):
    app = FastAPI()
    app.include_router(api_router)
    app.state.engine = engine
    app.state.ready_event = asyncio.Event()
    app.state.ready_event.set()
    with TestClient(app) as test_client:
        yield test_client


def test_healthz_and_readyz(api):
    assert api.get("/healthz").json() == {"status": "ok", "store": True}
    assert api.get("/readyz").json() == {"status": "ready"}


def test_readyz_before_startup_completes(api):
    api.app.state.ready_event.clear()
    assert api.get("/readyz").status_code == 503


def test_resolve_single_entity(api, backend):
    backend.add("U1", "Alice", "https://img/a.png")

    resp = api.get("/v1/entities/U1")

    assert resp.status_code == 200
    assert resp.json() == {"displayName": "Alice", "avatarUrl": "https://img/a.png"}


def test_resolve_many_reports_degraded(api, backend):
    backend.add("U1", "Alice")
    backend.add("U3", "Carol")

    resp = api.get("/v1/entities", params={"ids": "U1,U2, U3"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["records"] == {
        "U1": {"displayName": "Alice", "avatarUrl": None},
        "U2": {"displayName": "U2", "avatarUrl": None},
        "U3": {"displayName": "Carol", "avatarUrl": None},
    }
    assert body["degraded"] is True


def test_resolve_many_requires_ids(api):
    assert api.get("/v1/entities", params={"ids": " , "}).status_code == 400
    assert api.get("/v1/entities").status_code == 422


def test_aggregate_endpoint(api, backend):
    backend.counts[("A", "given")] = 5
    backend.fail_counts.add("B")

    resp = api.get(
        "/v1/aggregate",
        params={
            "ids": "A,B",
            "metric": "given",
            "start": "2026-01-01",
            "end": "2026-03-31",
            "limit": 1,
        },
    )

    assert resp.status_code == 200
    assert resp.json() == {
        "counts": {"A": 5, "B": 0},
        "partial": True,
        "failed": ["B"],
        "top": [{"entity_id": "A", "count": 5, "rank": 1}],
    }


def test_aggregate_rejects_reversed_range(api):
    resp = api.get(
        "/v1/aggregate",
        params={"ids": "A", "metric": "given", "start": "2026-04-01", "end": "2026-01-01"},
    )
    assert resp.status_code == 400


def test_aggregate_rejects_unknown_metric(api):
    resp = api.get(
        "/v1/aggregate",
        params={"ids": "A", "metric": "stolen", "start": "2026-01-01", "end": "2026-01-02"},
    )
    assert resp.status_code == 422


def test_leaderboard_endpoint(api, backend):
    backend.entities["received"] = ["A", "B"]
    backend.counts[("A", "received")] = 2
    backend.counts[("B", "received")] = 7
    backend.add("A", "Alice")
    backend.add("B", "Bob")

    resp = api.get(
        "/v1/leaderboard",
        params={"metric": "received", "start": "2026-01-01", "end": "2026-03-31"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert [(e["entity_id"], e["display_name"], e["rank"]) for e in body["entries"]] == [
        ("B", "Bob", 1),
        ("A", "Alice", 2),
    ]
    assert body["total"] == 9
    assert body["partial"] is False
    assert body["date_range"] == {"start": "2026-01-01", "end": "2026-03-31"}


def test_leaderboard_requires_both_previous_bounds(api):
    resp = api.get(
        "/v1/leaderboard",
        params={
            "metric": "given",
            "start": "2026-01-01",
            "end": "2026-03-31",
            "previous_start": "2025-10-01",
        },
    )
    assert resp.status_code == 400


def test_leaderboard_listing_failure_is_bad_gateway(api, backend):
    backend.listing_failures = 10

    resp = api.get(
        "/v1/leaderboard",
        params={"metric": "given", "start": "2026-01-01", "end": "2026-03-31"},
    )

    assert resp.status_code == 502
