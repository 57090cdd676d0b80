"""At most one outstanding backend request per entity id."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Dict, Generic, TypeVar

from entity_engine.core.logger import get_logger
from entity_engine.infrastructure.metrics import (
    COALESCED_JOINS_TOTAL,
    COALESCER_IN_FLIGHT,
)

logger = get_logger("entity_engine.coalescer")

T = TypeVar("T")


class RequestCoalescer(Generic[T]):
    """Registry of in-flight requests keyed by entity id.

    The first caller for a key starts ``factory()`` as a task; later callers
    get the same task until it settles. The registry entry is removed in
    the task's done callback, so success, failure and cancellation all
    release it.

    ``join_or_start`` is synchronous: checking the registry and registering a
    new task happen without yielding to the event loop, which is what keeps
    two tasks from both starting a request for the same id.
    """

    def __init__(self) -> None:
        self._in_flight: Dict[str, asyncio.Task[T]] = {}

    def in_flight(self, key: str) -> bool:
        return key in self._in_flight

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    def join_or_start(
        self, key: str, factory: Callable[[], Awaitable[T]]
    ) -> asyncio.Task[T]:
        task = self._in_flight.get(key)
        if task is not None:
            COALESCED_JOINS_TOTAL.inc()
            logger.debug("coalesced_join", extra={"entity_id": key})
            return task
        task = asyncio.ensure_future(factory())
        self._in_flight[key] = task
        COALESCER_IN_FLIGHT.set(len(self._in_flight))
        task.add_done_callback(lambda t, k=key: self._release(k, t))
        return task

    async def coalesce(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        """Result of the in-flight request for ``key``, starting one if needed.

        The shared task is shielded: a caller going away (a panel unmounting)
        never cancels the request other callers are waiting on.
        """
        return await asyncio.shield(self.join_or_start(key, factory))

    def _release(self, key: str, task: asyncio.Task[T]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        COALESCER_IN_FLIGHT.set(len(self._in_flight))
        # Mark the outcome retrieved; every waiter may already be gone.
        if not task.cancelled():
            task.exception()
