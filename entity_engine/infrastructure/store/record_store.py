from __future__ import annotations

import asyncio
import json
from typing import Dict, Mapping, Optional

from pydantic import ValidationError

from entity_engine.core.exceptions import StoreUnavailable
from entity_engine.core.logger import get_logger
from entity_engine.domain.models import CacheEntry, PersistedBlob, Record
from entity_engine.infrastructure.metrics import (
    RECORD_CACHE_LOOKUPS_TOTAL,
    RECORD_STORE_ERRORS_TOTAL,
)
from entity_engine.utils.clock import Clock, epoch_ms

from .backends import BlobBackend

logger = get_logger("entity_engine.record_store")

DEFAULT_TTL_MS = 7 * 24 * 60 * 60 * 1000


class PersistentRecordStore:
    """Durable id -> record map with per-entry write time and a fixed TTL.

    Notes:
        - The blob is loaded lazily, once, on first access.
        - An unreadable or malformed blob is an empty store (fail open).
        - Stale entries stay until overwritten; they are the fallback when a
          live fetch fails.
        - Every write updates memory first, then flushes one snapshot.
          Flush failures are logged and dropped.
    """

    def __init__(
        self,
        backend: BlobBackend,
        ttl_ms: int = DEFAULT_TTL_MS,
        clock: Clock = epoch_ms,
    ):
        self.backend = backend
        self.ttl_ms = ttl_ms
        self.clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._loaded = False
        self._load_lock = asyncio.Lock()
        self._flush_lock = asyncio.Lock()
        self._version = 0
        self._flushed_version = 0

    # Reads
    async def read(self, entity_id: str) -> Optional[CacheEntry]:
        """Entry for ``entity_id`` regardless of age."""
        await self._ensure_loaded()
        return self._entries.get(entity_id)

    async def read_fresh(
        self, entity_id: str, now_ms: Optional[int] = None
    ) -> Optional[CacheEntry]:
        entry = await self.read(entity_id)
        if entry is None:
            RECORD_CACHE_LOOKUPS_TOTAL.labels("miss").inc()
            return None
        now = self.clock() if now_ms is None else now_ms
        if not self.is_fresh(entry, now):
            RECORD_CACHE_LOOKUPS_TOTAL.labels("stale").inc()
            return None
        RECORD_CACHE_LOOKUPS_TOTAL.labels("fresh").inc()
        return entry

    def is_fresh(self, entry: CacheEntry, now_ms: int) -> bool:
        return entry.is_fresh(now_ms, self.ttl_ms)

    async def snapshot(self) -> Dict[str, CacheEntry]:
        await self._ensure_loaded()
        return dict(self._entries)

    # Writes
    async def write(
        self, entity_id: str, record: Record, now_ms: Optional[int] = None
    ) -> None:
        await self.write_many({entity_id: record}, now_ms)

    async def write_many(
        self, records: Mapping[str, Record], now_ms: Optional[int] = None
    ) -> None:
        if not records:
            return
        await self._ensure_loaded()
        now = self.clock() if now_ms is None else now_ms
        for eid, record in records.items():
            self._entries[eid] = CacheEntry(record=record, written_at_epoch_ms=now)
        self._version += 1
        await self._flush()

    async def ping(self) -> bool:
        return await self.backend.ping()

    # Internals
    async def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        async with self._load_lock:
            if self._loaded:
                return
            self._entries = await self._load()
            self._loaded = True

    async def _load(self) -> Dict[str, CacheEntry]:
        try:
            blob = await self.backend.load()
        except StoreUnavailable as e:
            RECORD_STORE_ERRORS_TOTAL.labels("load").inc()
            logger.warning("record_store_unreadable", extra={"error": str(e)})
            return {}
        if not blob:
            return {}
        try:
            parsed = PersistedBlob.validate_json(blob)
        except ValidationError as e:
            RECORD_STORE_ERRORS_TOTAL.labels("parse").inc()
            logger.warning(
                "record_store_malformed",
                extra={"error_count": e.error_count()},
            )
            return {}
        logger.debug("record_store_loaded", extra={"entries": len(parsed)})
        return {eid: CacheEntry.from_persisted(p) for eid, p in parsed.items()}

    async def _flush(self) -> None:
        # One flush at a time; each flush writes the latest state, so a flush
        # queued behind a newer one has nothing left to do.
        async with self._flush_lock:
            if self._flushed_version >= self._version:
                return
            version = self._version
            blob = json.dumps(
                {eid: e.to_persisted() for eid, e in self._entries.items()},
                ensure_ascii=False,
            )
            try:
                await self.backend.save(blob)
            except StoreUnavailable as e:
                RECORD_STORE_ERRORS_TOTAL.labels("flush").inc()
                logger.warning(
                    "record_store_flush_failed",
                    extra={"error": str(e), "entries": len(self._entries)},
                )
                return
            self._flushed_version = version
