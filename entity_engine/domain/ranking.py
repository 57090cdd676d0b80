"""Ranking post-processing shared by every leaderboard-style consumer."""

from typing import Dict, List, Mapping, Optional

from .models import RankedCount


def top_n(counts: Mapping[str, int], limit: int) -> List[RankedCount]:
    """Sort by count descending, drop zeros, keep the first ``limit``.

    Ties are broken by entity id so the order does not depend on which
    fetch finished first.
    """
    if limit <= 0:
        return []
    ordered = sorted(
        ((eid, c) for eid, c in counts.items() if c > 0),
        key=lambda item: (-item[1], item[0]),
    )
    return [
        RankedCount(entity_id=eid, count=c, rank=i + 1)
        for i, (eid, c) in enumerate(ordered[:limit])
    ]


def rank_map(ranked: List[RankedCount]) -> Dict[str, int]:
    return {r.entity_id: r.rank for r in ranked}


def rank_change(current_rank: int, previous_rank: Optional[int]) -> Optional[int]:
    """Positive when the entity moved up; None when it was not ranked before."""
    if previous_rank is None:
        return None
    return previous_rank - current_rank
