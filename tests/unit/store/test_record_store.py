import asyncio
import json

import pytest

from entity_engine.domain.models import Record
from entity_engine.infrastructure.store.record_store import PersistentRecordStore

NOW_MS = 1_700_000_000_000
DAY_MS = 24 * 60 * 60 * 1000

ALICE = Record(display_name="Alice", avatar_url="https://img/alice.png")


@pytest.mark.asyncio
async def test_write_then_read_fresh(store, blob_backend):
    """A written record is served as fresh and persisted in camelCase."""
    await store.write("U1", ALICE)

    entry = await store.read_fresh("U1")
    assert entry is not None
    assert entry.record == ALICE
    assert entry.written_at_epoch_ms == NOW_MS

    persisted = json.loads(blob_backend.blob)
    assert persisted == {
        "U1": {
            "displayName": "Alice",
            "avatarUrl": "https://img/alice.png",
            "writtenAtEpochMs": NOW_MS,
        }
    }


@pytest.mark.asyncio
async def test_expired_entry_is_not_fresh_but_still_readable(store, clock):
    """Past the TTL an entry stops being fresh but remains as a fallback."""
    await store.write("U1", ALICE)
    clock.advance(7 * DAY_MS + 1)

    assert await store.read_fresh("U1") is None
    stale = await store.read("U1")
    assert stale is not None
    assert stale.record == ALICE


@pytest.mark.asyncio
async def test_entry_exactly_at_ttl_is_fresh(store, clock):
    await store.write("U1", ALICE)
    clock.advance(7 * DAY_MS)

    assert await store.read_fresh("U1") is not None


@pytest.mark.asyncio
async def test_missing_entry(store):
    assert await store.read("nobody") is None
    assert await store.read_fresh("nobody") is None


@pytest.mark.asyncio
async def test_existing_blob_is_loaded(make_blob_backend, clock):
    blob = json.dumps(
        {"U9": {"displayName": "Ivan", "avatarUrl": None, "writtenAtEpochMs": NOW_MS}}
    )
    store = PersistentRecordStore(make_blob_backend(blob), clock=clock)

    entry = await store.read_fresh("U9")
    assert entry is not None
    assert entry.record.display_name == "Ivan"
    assert entry.record.avatar_url is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "blob",
    [
        "not json at all",
        "[1, 2, 3]",
        '{"U1": {"displayName": "Alice"}}',
        '{"U1": {"displayName": "Alice", "writtenAtEpochMs": "yesterday"}}',
    ],
)
async def test_malformed_blob_is_treated_as_empty(blob, make_blob_backend, clock):
    """Corrupted state never fails a read; the store starts empty."""
    backend = make_blob_backend(blob)
    store = PersistentRecordStore(backend, clock=clock)

    assert await store.read("U1") is None

    await store.write("U2", ALICE)
    assert set(json.loads(backend.blob)) == {"U2"}


@pytest.mark.asyncio
async def test_unreadable_backend_is_treated_as_empty(make_blob_backend, clock):
    backend = make_blob_backend()
    backend.fail_load = True
    store = PersistentRecordStore(backend, clock=clock)

    assert await store.read("U1") is None


@pytest.mark.asyncio
async def test_failed_flush_keeps_memory_state(store, blob_backend):
    """Persistence is best effort: the caller still sees its write."""
    blob_backend.fail_save = True

    await store.write("U1", ALICE)

    assert blob_backend.blob is None
    entry = await store.read_fresh("U1")
    assert entry is not None and entry.record == ALICE


@pytest.mark.asyncio
async def test_write_many_flushes_once(store, blob_backend):
    records = {f"U{i}": Record(display_name=f"User {i}") for i in range(20)}

    await store.write_many(records)

    assert len(blob_backend.saves) == 1
    assert len(json.loads(blob_backend.blob)) == 20


@pytest.mark.asyncio
async def test_write_many_empty_is_noop(store, blob_backend):
    await store.write_many({})
    assert blob_backend.saves == []


@pytest.mark.asyncio
async def test_concurrent_writes_end_in_complete_blob(store, blob_backend):
    await asyncio.gather(
        store.write("U1", ALICE),
        store.write("U2", Record(display_name="Bob")),
    )

    assert set(json.loads(blob_backend.blob)) == {"U1", "U2"}


@pytest.mark.asyncio
async def test_state_survives_restart(blob_backend, clock):
    first = PersistentRecordStore(blob_backend, clock=clock)
    await first.write("U1", ALICE)

    second = PersistentRecordStore(blob_backend, clock=clock)
    entry = await second.read_fresh("U1")
    assert entry is not None and entry.record == ALICE


@pytest.mark.asyncio
async def test_snapshot_is_a_copy(store):
    await store.write("U1", ALICE)

    snap = await store.snapshot()
    snap.pop("U1")

    assert await store.read("U1") is not None
    assert set(await store.snapshot()) == {"U1"}
