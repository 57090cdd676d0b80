import asyncio

import pytest

from entity_engine.utils.concurrency import (
    CancellationToken,
    bounded_map,
    run_blocking,
)


@pytest.mark.asyncio
async def test_bounded_map_caps_outstanding_calls():
    in_flight = 0
    peak = 0
    seen = []

    async def fn(item):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0)
        seen.append(item)
        in_flight -= 1
        return item * 2

    result = await bounded_map(range(23), fn, concurrency=5)

    assert peak == 5
    assert sorted(seen) == list(range(23))
    assert result.results == {i: i * 2 for i in range(23)}
    assert result.errors == {}
    assert result.cancelled is False


@pytest.mark.asyncio
async def test_bounded_map_isolates_failures():
    async def fn(item):
        if item == "bad":
            raise ValueError("nope")
        return len(item)

    result = await bounded_map(["a", "bad", "ccc"], fn, concurrency=2)

    assert result.results == {"a": 1, "ccc": 3}
    assert set(result.errors) == {"bad"}
    assert isinstance(result.errors["bad"], ValueError)


@pytest.mark.asyncio
async def test_bounded_map_processes_duplicates_once():
    calls = []

    async def fn(item):
        calls.append(item)
        return item

    await bounded_map(["a", "b", "a", "b"], fn, concurrency=3)

    assert sorted(calls) == ["a", "b"]


@pytest.mark.asyncio
async def test_bounded_map_more_workers_than_items():
    async def fn(item):
        return item

    result = await bounded_map([1], fn, concurrency=10)
    assert result.results == {1: 1}


@pytest.mark.asyncio
async def test_bounded_map_empty_and_invalid_concurrency():
    async def fn(item):
        return item

    assert (await bounded_map([], fn, concurrency=5)).results == {}
    with pytest.raises(ValueError):
        await bounded_map([1], fn, concurrency=0)


@pytest.mark.asyncio
async def test_cancellation_stops_claiming_and_discards_late_results():
    token = CancellationToken()
    started = []

    async def fn(item):
        started.append(item)
        if item == 1:
            token.cancel()
        await asyncio.sleep(0)
        return item

    result = await bounded_map(list(range(10)), fn, concurrency=2, cancel=token)

    assert result.cancelled is True
    # workers 0 and 1 were already issued; nothing new was claimed afterwards
    assert started == [0, 1]
    assert result.results == {}


@pytest.mark.asyncio
async def test_cancelled_before_start_does_nothing():
    token = CancellationToken()
    token.cancel()

    async def fn(item):
        raise AssertionError("should not run")

    result = await bounded_map([1, 2, 3], fn, concurrency=2, cancel=token)
    assert result.results == {} and result.errors == {}
    assert result.cancelled is True


@pytest.mark.asyncio
async def test_run_blocking_runs_in_thread():
    assert await run_blocking(sum, [1, 2, 3]) == 6
