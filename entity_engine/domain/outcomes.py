"""Settled results handed back by the resolver and the aggregator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Set

from .models import Record


@dataclass
class ResolutionOutcome:
    records: Dict[str, Record] = field(default_factory=dict)
    cache_hits: Set[str] = field(default_factory=set)
    fetched: Set[str] = field(default_factory=set)
    stale_fallbacks: Set[str] = field(default_factory=set)
    synthetic: Set[str] = field(default_factory=set)
    cancelled: bool = False

    @property
    def degraded(self) -> bool:
        return bool(self.stale_fallbacks or self.synthetic)


@dataclass(frozen=True)
class AggregateOutcome:
    """Counts per entity plus the ids whose count is a stand-in zero.

    ``partial`` tells callers that some zeros are not real measurements.
    """

    counts: Dict[str, int]
    failed: FrozenSet[str] = frozenset()
    cancelled: bool = False

    @property
    def partial(self) -> bool:
        return bool(self.failed) or self.cancelled
