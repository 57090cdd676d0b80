"""Cache-first, batched resolution of entity ids into display records."""

from __future__ import annotations

import asyncio
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from entity_engine.core.exceptions import TransientFetchError
from entity_engine.core.logger import get_logger
from entity_engine.domain.models import Record
from entity_engine.domain.outcomes import ResolutionOutcome
from entity_engine.infrastructure.backend.client import BackendClient
from entity_engine.infrastructure.metrics import (
    INDIVIDUAL_RETRIES_SKIPPED_TOTAL,
    INDIVIDUAL_RETRIES_TOTAL,
    RECORD_FALLBACKS_TOTAL,
)
from entity_engine.infrastructure.store.record_store import PersistentRecordStore
from entity_engine.services.coalescer import RequestCoalescer
from entity_engine.utils.clock import Clock, epoch_ms
from entity_engine.utils.concurrency import CancellationToken, bounded_map

logger = get_logger("entity_engine.batch_resolver")

MAX_BATCH_SIZE = 100
INDIVIDUAL_RETRY_LIMIT = 10


def chunked(items: Sequence[str], size: int) -> Iterator[List[str]]:
    for i in range(0, len(items), size):
        yield list(items[i : i + size])


class BatchResolver:
    """Resolve ids through the record store, batch calls and a small retry path.

    Flow for ``resolve_many``:
        1. fresh store hits are answered without I/O;
        2. misses are split into batches of at most ``batch_size``;
        3. batches run concurrently, each failing on its own;
        4. ids from failed batches, or missing from a batch answer, are
           retried one by one only when there are at most ``retry_limit``;
        5. anything still unresolved falls back to a stale entry, then to a
           synthetic record;
        6. freshly fetched records are written back in one flush.

    Every backend call for an id is registered in the coalescer, so a
    single-id request racing with a batch containing that id joins the
    batch instead of issuing a second call.
    """

    def __init__(
        self,
        client: BackendClient,
        store: PersistentRecordStore,
        coalescer: RequestCoalescer[Optional[Record]],
        *,
        batch_size: int = MAX_BATCH_SIZE,
        retry_limit: int = INDIVIDUAL_RETRY_LIMIT,
        clock: Clock = epoch_ms,
    ):
        if not 1 <= batch_size <= MAX_BATCH_SIZE:
            raise ValueError(f"batch_size must be within 1..{MAX_BATCH_SIZE}")
        self.client = client
        self.store = store
        self.coalescer = coalescer
        self.batch_size = batch_size
        self.retry_limit = retry_limit
        self.clock = clock

    async def resolve_one(self, entity_id: str) -> Record:
        entry = await self.store.read_fresh(entity_id, self.clock())
        if entry is not None:
            return entry.record
        try:
            record = await self._fetch_single(entity_id)
        except Exception as e:
            self._log_fetch_error("single_fetch_failed", [entity_id], e)
            record = None
        if record is not None:
            await self.store.write(entity_id, record, self.clock())
            return record
        record, _ = await self._fallback(entity_id)
        return record

    async def resolve_many(
        self,
        entity_ids: Iterable[str],
        cancel: Optional[CancellationToken] = None,
    ) -> ResolutionOutcome:
        ids = list(dict.fromkeys(entity_ids))
        outcome = ResolutionOutcome()
        if not ids:
            return outcome

        now = self.clock()
        missing: List[str] = []
        for eid in ids:
            entry = await self.store.read_fresh(eid, now)
            if entry is None:
                missing.append(eid)
            else:
                outcome.records[eid] = entry.record
                outcome.cache_hits.add(eid)

        fetched: Dict[str, Record] = {}
        if missing and not _is_cancelled(cancel):
            fetched, retryable = await self._fetch_batched(missing)
            if retryable and not _is_cancelled(cancel):
                fetched.update(await self._retry_individually(retryable))

        # Records that land after the session was cancelled are cached but
        # not handed back.
        outcome.cancelled = _is_cancelled(cancel)
        if not outcome.cancelled:
            outcome.records.update(fetched)
            outcome.fetched.update(fetched)

        # Fallbacks are read before the write-back so a discarded record
        # never comes back as its own fallback.
        for eid in missing:
            if eid in outcome.fetched:
                continue
            record, kind = await self._fallback(eid)
            outcome.records[eid] = record
            if kind == "stale":
                outcome.stale_fallbacks.add(eid)
            else:
                outcome.synthetic.add(eid)

        if fetched:
            await self.store.write_many(fetched, self.clock())

        outcome.records = {eid: outcome.records[eid] for eid in ids}
        return outcome

    # Internals
    async def _fetch_batched(
        self, missing: List[str]
    ) -> Tuple[Dict[str, Record], List[str]]:
        """Fetch ``missing`` in batches, joining requests already in flight.

        Returns the resolved records and the ids worth retrying one by one:
        members of a failed or sparse batch issued here, and joined ids
        whose request raised. A joined request that settled to ``None``
        already has the backend's answer and is not retried.
        """
        joined: Dict[str, asyncio.Future[Optional[Record]]] = {}
        to_batch: List[str] = []
        for eid in missing:
            if self.coalescer.in_flight(eid):
                joined[eid] = self.coalescer.join_or_start(
                    eid, lambda e=eid: self.client.fetch_record(e)
                )
            else:
                to_batch.append(eid)

        batched: Dict[str, asyncio.Future[Optional[Record]]] = {}
        batch_count = 0
        for chunk in chunked(to_batch, self.batch_size):
            batch = asyncio.ensure_future(self._fetch_batch(chunk))
            batch_count += 1
            for eid in chunk:
                batched[eid] = self.coalescer.join_or_start(
                    eid, lambda b=batch, e=eid: _member_of(b, e)
                )

        logger.debug(
            "resolve_batches_issued",
            extra={
                "batches": batch_count,
                "batched_ids": len(to_batch),
                "joined_ids": len(joined),
            },
        )

        waiters = {**joined, **batched}
        keys = list(waiters)
        results = await asyncio.gather(
            *(asyncio.shield(waiters[k]) for k in keys), return_exceptions=True
        )
        fetched: Dict[str, Record] = {}
        retryable: List[str] = []
        for eid, result in zip(keys, results):
            if isinstance(result, Record):
                fetched[eid] = result
            elif eid in batched or isinstance(result, BaseException):
                retryable.append(eid)
        return fetched, retryable

    async def _fetch_batch(self, chunk: List[str]) -> Dict[str, Record]:
        try:
            records = await self.client.fetch_records(chunk)
        except Exception as e:
            self._log_fetch_error("batch_fetch_failed", chunk, e)
            raise
        if len(records) < len(chunk):
            logger.debug(
                "batch_response_sparse",
                extra={"requested": len(chunk), "returned": len(records)},
            )
        return records

    async def _retry_individually(self, failed: List[str]) -> Dict[str, Record]:
        if len(failed) > self.retry_limit:
            INDIVIDUAL_RETRIES_SKIPPED_TOTAL.inc(len(failed))
            logger.warning(
                "individual_retry_skipped",
                extra={"failed_count": len(failed), "retry_limit": self.retry_limit},
            )
            return {}
        INDIVIDUAL_RETRIES_TOTAL.inc(len(failed))
        result = await bounded_map(failed, self._fetch_single, concurrency=len(failed))
        for eid, err in result.errors.items():
            self._log_fetch_error("individual_retry_failed", [eid], err)
        return {eid: rec for eid, rec in result.results.items() if rec is not None}

    async def _fetch_single(self, entity_id: str) -> Optional[Record]:
        return await self.coalescer.coalesce(
            entity_id, lambda: self.client.fetch_record(entity_id)
        )

    async def _fallback(self, entity_id: str) -> Tuple[Record, str]:
        entry = await self.store.read(entity_id)
        if entry is not None:
            RECORD_FALLBACKS_TOTAL.labels("stale").inc()
            return entry.record, "stale"
        RECORD_FALLBACKS_TOTAL.labels("synthetic").inc()
        return Record.synthetic(entity_id), "synthetic"

    @staticmethod
    def _log_fetch_error(event: str, ids: List[str], err: BaseException) -> None:
        if isinstance(err, TransientFetchError):
            logger.warning(
                event,
                extra={
                    "entity_count": len(ids),
                    "status_code": err.status_code,
                    "error": str(err),
                },
            )
        else:
            logger.error(
                event,
                extra={"entity_count": len(ids), "error": repr(err)},
                exc_info=(type(err), err, err.__traceback__),
            )


async def _member_of(
    batch: "asyncio.Future[Dict[str, Record]]", entity_id: str
) -> Optional[Record]:
    records = await batch
    return records.get(entity_id)


def _is_cancelled(cancel: Optional[CancellationToken]) -> bool:
    return cancel is not None and cancel.cancelled
