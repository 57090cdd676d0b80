"""Single entry point every consumer uses to resolve and aggregate."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

import httpx

from entity_engine.core.config import Settings
from entity_engine.core.logger import get_logger
from entity_engine.domain.models import DateRange, Metric, Record
from entity_engine.domain.outcomes import AggregateOutcome, ResolutionOutcome
from entity_engine.infrastructure.backend.client import BackendClient
from entity_engine.infrastructure.store.backends import BlobBackend
from entity_engine.infrastructure.store.record_store import PersistentRecordStore
from entity_engine.services.aggregator import BoundedConcurrencyAggregator
from entity_engine.services.batch_resolver import BatchResolver
from entity_engine.services.coalescer import RequestCoalescer
from entity_engine.utils.clock import Clock, epoch_ms
from entity_engine.utils.concurrency import CancellationToken

logger = get_logger("entity_engine.engine")


class EntityEngine:
    """Owns the record store and the in-flight registry for one session.

    Build it once at startup and hand the same instance to every consumer;
    sharing the instance is what makes coalescing and caching work across
    panels.
    """

    def __init__(
        self,
        client: BackendClient,
        store: PersistentRecordStore,
        *,
        batch_size: int = 100,
        retry_limit: int = 10,
        default_concurrency: int = 5,
        clock: Clock = epoch_ms,
    ):
        self.client = client
        self.store = store
        self.coalescer: RequestCoalescer[Optional[Record]] = RequestCoalescer()
        self.resolver = BatchResolver(
            client,
            store,
            self.coalescer,
            batch_size=batch_size,
            retry_limit=retry_limit,
            clock=clock,
        )
        self.aggregator = BoundedConcurrencyAggregator(client, default_concurrency)

    @classmethod
    def from_settings(
        cls,
        cfg: Settings,
        http: httpx.AsyncClient,
        blob_backend: BlobBackend,
        clock: Clock = epoch_ms,
    ) -> "EntityEngine":
        client = BackendClient.from_settings(http, cfg)
        store = PersistentRecordStore(blob_backend, cfg.record_cache_ttl_ms, clock)
        return cls(
            client,
            store,
            batch_size=cfg.resolve_batch_size,
            retry_limit=cfg.individual_retry_limit,
            default_concurrency=cfg.aggregate_concurrency,
            clock=clock,
        )

    @staticmethod
    def new_session() -> CancellationToken:
        """Token a consumer cancels when it no longer wants the results."""
        return CancellationToken()

    # Resolution
    async def resolve_one(self, entity_id: str) -> Record:
        return await self.resolver.resolve_one(entity_id)

    async def resolve_many(self, entity_ids: Iterable[str]) -> Dict[str, Record]:
        outcome = await self.resolver.resolve_many(entity_ids)
        return outcome.records

    async def resolve_many_detailed(
        self,
        entity_ids: Iterable[str],
        cancel: Optional[CancellationToken] = None,
    ) -> ResolutionOutcome:
        return await self.resolver.resolve_many(entity_ids, cancel)

    # Aggregation
    async def aggregate(
        self,
        entity_ids: Iterable[str],
        metric: Metric,
        date_range: DateRange,
        concurrency: Optional[int] = None,
    ) -> Dict[str, int]:
        outcome = await self.aggregator.aggregate(
            entity_ids, metric, date_range, concurrency
        )
        return outcome.counts

    async def aggregate_detailed(
        self,
        entity_ids: Iterable[str],
        metric: Metric,
        date_range: DateRange,
        concurrency: Optional[int] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> AggregateOutcome:
        return await self.aggregator.aggregate(
            entity_ids, metric, date_range, concurrency, cancel
        )

    # Listing
    async def list_entities(self, metric: Metric) -> List[str]:
        """Raises EntityListingError when the backend cannot list entities."""
        return await self.client.list_entities(metric)

    async def healthy(self) -> bool:
        return await self.store.ping()

    async def close(self) -> None:
        await self.client.http.aclose()
        logger.info("entity_engine_closed")
