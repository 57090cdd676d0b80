from .models import (
    AggregateQuery,
    CacheEntry,
    DateRange,
    Leaderboard,
    LeaderboardEntry,
    Metric,
    RankedCount,
    Record,
)
from .outcomes import AggregateOutcome, ResolutionOutcome

__all__ = [
    "AggregateOutcome",
    "AggregateQuery",
    "CacheEntry",
    "DateRange",
    "Leaderboard",
    "LeaderboardEntry",
    "Metric",
    "RankedCount",
    "Record",
    "ResolutionOutcome",
]
