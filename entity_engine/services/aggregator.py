from __future__ import annotations

from typing import Iterable, Optional

from entity_engine.core.exceptions import TransientFetchError
from entity_engine.core.logger import get_logger
from entity_engine.domain.models import DateRange, Metric
from entity_engine.domain.outcomes import AggregateOutcome
from entity_engine.infrastructure.backend.client import BackendClient
from entity_engine.infrastructure.metrics import AGGREGATE_FETCH_FAILURES_TOTAL
from entity_engine.utils.concurrency import CancellationToken, bounded_map

logger = get_logger("entity_engine.aggregator")

DEFAULT_CONCURRENCY = 5


class BoundedConcurrencyAggregator:
    """Per-entity counters over a date range, fetched by a fixed worker pool.

    A failed fetch counts as zero and is listed in ``failed``; it never
    blanks the other entities. Counts are range dependent and not cached.
    """

    def __init__(
        self, client: BackendClient, default_concurrency: int = DEFAULT_CONCURRENCY
    ):
        self.client = client
        self.default_concurrency = default_concurrency

    async def aggregate(
        self,
        entity_ids: Iterable[str],
        metric: Metric,
        date_range: DateRange,
        concurrency: Optional[int] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> AggregateOutcome:
        ids = list(dict.fromkeys(entity_ids))
        workers = self.default_concurrency if concurrency is None else concurrency

        async def fetch(eid: str) -> int:
            return await self.client.fetch_count(eid, metric, date_range)

        result = await bounded_map(ids, fetch, workers, cancel)

        counts = dict(result.results)
        for eid, err in result.errors.items():
            counts[eid] = 0
            if not isinstance(err, TransientFetchError):
                logger.error(
                    "aggregate_fetch_unexpected_error",
                    extra={"entity_id": eid, "error": repr(err)},
                    exc_info=(type(err), err, err.__traceback__),
                )
        if result.errors:
            AGGREGATE_FETCH_FAILURES_TOTAL.inc(len(result.errors))
            logger.warning(
                "aggregate_partial",
                extra={
                    "metric": metric.value,
                    "failed_count": len(result.errors),
                    "total": len(ids),
                },
            )
        if result.cancelled:
            logger.debug(
                "aggregate_cancelled",
                extra={"metric": metric.value, "completed": len(counts)},
            )
        return AggregateOutcome(
            counts=counts,
            failed=frozenset(result.errors),
            cancelled=result.cancelled,
        )
