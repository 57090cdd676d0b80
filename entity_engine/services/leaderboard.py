from __future__ import annotations

import asyncio
from typing import Dict, Optional

from entity_engine.core.logger import get_logger
from entity_engine.domain.models import (
    DateRange,
    Leaderboard,
    LeaderboardEntry,
    Metric,
)
from entity_engine.domain.ranking import rank_change, rank_map, top_n
from entity_engine.services.engine import EntityEngine
from entity_engine.utils.concurrency import CancellationToken

logger = get_logger("entity_engine.leaderboard")


class LeaderboardService:
    """Ranked, named leaderboard for one metric over a date range.

    Optionally compares against a previous range (e.g. last quarter) and
    reports how each entry's rank moved.
    """

    def __init__(self, engine: EntityEngine):
        self.engine = engine

    async def build(
        self,
        metric: Metric,
        date_range: DateRange,
        limit: int = 100,
        previous_range: Optional[DateRange] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> Leaderboard:
        # Hard failure: without the entity list there is nothing to rank.
        entity_ids = await self.engine.list_entities(metric)

        current_task = self.engine.aggregate_detailed(
            entity_ids, metric, date_range, cancel=cancel
        )
        if previous_range is not None:
            previous_task = self.engine.aggregate_detailed(
                entity_ids, metric, previous_range, cancel=cancel
            )
            current, previous = await asyncio.gather(current_task, previous_task)
        else:
            current, previous = await current_task, None

        ranked = top_n(current.counts, limit)
        previous_ranks: Dict[str, int] = {}
        if previous is not None:
            previous_ranks = rank_map(top_n(previous.counts, limit))

        resolution = await self.engine.resolve_many_detailed(
            [r.entity_id for r in ranked], cancel
        )

        entries = []
        for r in ranked:
            record = resolution.records[r.entity_id]
            prev = previous_ranks.get(r.entity_id) if previous is not None else None
            entries.append(
                LeaderboardEntry(
                    entity_id=r.entity_id,
                    count=r.count,
                    rank=r.rank,
                    previous_rank=prev,
                    rank_change=rank_change(r.rank, prev),
                    display_name=record.display_name,
                    avatar_url=record.avatar_url,
                )
            )

        partial = (
            current.partial
            or (previous is not None and previous.partial)
            or resolution.degraded
            or resolution.cancelled
        )
        logger.info(
            "leaderboard_built",
            extra={
                "metric": metric.value,
                "entities": len(entity_ids),
                "entries": len(entries),
                "partial": partial,
            },
        )
        return Leaderboard(
            metric=metric,
            date_range=date_range,
            previous_range=previous_range,
            entries=entries,
            total=sum(current.counts.values()),
            partial=partial,
        )
