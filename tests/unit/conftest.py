import asyncio
from collections import Counter
from typing import Dict, List, Optional, Set, Tuple

import httpx
import pytest

from entity_engine.core.exceptions import StoreUnavailable
from entity_engine.infrastructure.backend.client import BackendClient
from entity_engine.infrastructure.store.record_store import PersistentRecordStore
from entity_engine.services.engine import EntityEngine

NOW_MS = 1_700_000_000_000
DAY_MS = 24 * 60 * 60 * 1000


class FakeClock:
    def __init__(self, now_ms: int = NOW_MS):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


class MemoryBlobBackend:
    """In-memory stand-in for the Redis/file blob backends."""

    def __init__(self, blob: Optional[str] = None):
        self.blob = blob
        self.saves: List[str] = []
        self.fail_load = False
        self.fail_save = False

    async def load(self) -> Optional[str]:
        if self.fail_load:
            raise StoreUnavailable("load failed")
        return self.blob

    async def save(self, blob: str) -> None:
        if self.fail_save:
            raise StoreUnavailable("save failed")
        self.blob = blob
        self.saves.append(blob)

    async def ping(self) -> bool:
        return not (self.fail_load or self.fail_save)


class FakeBackend:
    """Scriptable backend served through httpx.MockTransport.

    Records, counts and listings are plain dicts; failures are switched on
    per endpoint or per id. ``gate`` holds every request until it is set,
    which lets tests observe what is in flight.
    """

    def __init__(self):
        self.records: Dict[str, dict] = {}
        # (id, metric) or (id, metric, start) -> count
        self.counts: Dict[Tuple[str, ...], int] = {}
        self.entities: Dict[str, List[str]] = {}
        self.fail_batches = False
        # a batch containing any of these ids fails as a whole
        self.fail_batches_with: Set[str] = set()
        self.fail_single: Set[str] = set()
        self.fail_counts: Set[str] = set()
        self.listing_failures = 0
        self.gate: Optional[asyncio.Event] = None
        self.calls: Counter = Counter()
        self.batch_requests: List[List[str]] = []
        self.single_requests: List[str] = []
        self.count_requests: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def add(self, entity_id: str, name: str, avatar: Optional[str] = None) -> None:
        self.records[entity_id] = {"displayName": name, "avatarUrl": avatar}

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
            return self._route(request)
        finally:
            self.in_flight -= 1

    def _route(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        params = request.url.params
        if path == "/resolve/batch":
            ids = params["ids"].split(",")
            self.calls["batch"] += 1
            self.batch_requests.append(ids)
            if self.fail_batches or self.fail_batches_with.intersection(ids):
                return httpx.Response(503, json={"error": "unavailable"})
            return httpx.Response(
                200, json={i: self.records[i] for i in ids if i in self.records}
            )
        if path == "/resolve":
            eid = params["id"]
            self.calls["single"] += 1
            self.single_requests.append(eid)
            if eid in self.fail_single:
                return httpx.Response(500, json={"error": "boom"})
            if eid not in self.records:
                return httpx.Response(404, json={"error": "not found"})
            return httpx.Response(200, json=self.records[eid])
        if path == "/aggregate":
            eid = params["id"]
            self.calls["aggregate"] += 1
            self.count_requests.append(eid)
            if eid in self.fail_counts:
                return httpx.Response(500, json={"error": "boom"})
            metric = params["metric"]
            count = self.counts.get(
                (eid, metric, params["start"]), self.counts.get((eid, metric), 0)
            )
            return httpx.Response(200, json={"count": count})
        if path == "/entities":
            self.calls["entities"] += 1
            if self.listing_failures > 0:
                self.listing_failures -= 1
                return httpx.Response(502, json={"error": "bad gateway"})
            return httpx.Response(200, json=self.entities.get(params["metric"], []))
        return httpx.Response(404)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def http_client(backend):
    return httpx.AsyncClient(
        transport=httpx.MockTransport(backend.handler),
        base_url="http://backend.test",
    )


@pytest.fixture
def client(http_client):
    return BackendClient(
        http_client,
        listing_retries=3,
        listing_retry_base_delay=0.0,
        listing_retry_max_delay=0.0,
    )


@pytest.fixture
def blob_backend():
    return MemoryBlobBackend()


@pytest.fixture
def store(blob_backend, clock):
    return PersistentRecordStore(blob_backend, ttl_ms=7 * DAY_MS, clock=clock)


@pytest.fixture
def engine(client, store, clock):
    return EntityEngine(client, store, clock=clock)


@pytest.fixture
def make_blob_backend():
    return MemoryBlobBackend
