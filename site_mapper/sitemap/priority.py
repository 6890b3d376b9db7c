"""site_mapper.sitemap.priority: automatic ``<priority>`` scoring.

The score mixes three signals, each mapped to ``[0, 1]``:

* depth: 1.0 at the seed, 0.8, 0.6, 0.4 for depths 1-3, 0.2 below that;
* popularity: ``min(1, log10(links + 1) / 2)``, so a hundred in-links saturate it;
* freshness: how many days ago the page last changed.

The weighted sum is not renormalised; weights that do not add up to 1 shift
the whole scale, and the clamp to ``[min, max]`` keeps the result valid.
"""
from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Optional

from site_mapper.config import PriorityScoringConfig, PriorityWeights, SeoDefaults

__all__ = [
    "UNKNOWN_FRESHNESS",
    "depth_score",
    "link_score",
    "freshness_score",
    "days_since",
    "score",
    "resolve_priority",
]

UNKNOWN_FRESHNESS = 0.6


def depth_score(depth: int) -> float:
    if depth <= 0:
        return 1.0
    if depth == 1:
        return 0.8
    if depth == 2:
        return 0.6
    if depth == 3:
        return 0.4
    return 0.2


def link_score(link_count: int) -> float:
    return min(1.0, math.log10(max(link_count, 0) + 1) / 2)


def freshness_score(days: Optional[float]) -> float:
    if days is None:
        return UNKNOWN_FRESHNESS
    if days <= 7:
        return 1.0
    if days <= 30:
        return 0.8
    if days <= 180:
        return 0.6
    if days <= 365:
        return 0.4
    return 0.2


def days_since(timestamp: str, now: Optional[datetime] = None) -> Optional[float]:
    """Age of a W3C datetime string in days, ``None`` if it cannot be parsed."""
    try:
        then = datetime.fromisoformat(timestamp)
    except (TypeError, ValueError):
        return None
    if then.tzinfo is None:
        then = then.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0.0, (now - then).total_seconds() / 86400)


def _clamp(value: float, minimum: float, maximum: float) -> float:
    return round(max(minimum, min(maximum, value)), 2)


def score(
    depth: int,
    link_count: int,
    weights: PriorityWeights,
    *,
    freshness_days: Optional[float] = None,
    boost: float = 0.0,
    minimum: float = 0.1,
    maximum: float = 1.0,
) -> float:
    """Auto-score a page; the result always lies in ``[minimum, maximum]``."""
    weighted = round(
        depth_score(depth) * weights.depth
        + link_score(link_count) * weights.links
        + freshness_score(freshness_days) * weights.freshness,
        2,
    )
    return _clamp(weighted + boost, minimum, maximum)


def resolve_priority(
    priority: Optional[float],
    boost: float,
    *,
    depth: int,
    link_count: int,
    freshness_days: Optional[float],
    scoring: PriorityScoringConfig,
    defaults: SeoDefaults,
) -> float:
    """Final priority of one URL.

    An explicit rule priority is only clamped. ``None`` is auto-scored when
    scoring is enabled and falls back to ``defaults.priority`` otherwise.
    """
    if priority is None and scoring.enabled:
        return score(
            depth,
            link_count,
            scoring.weights,
            freshness_days=freshness_days,
            boost=boost,
            minimum=scoring.min,
            maximum=scoring.max,
        )
    if priority is None:
        priority = defaults.priority
    return _clamp(priority, scoring.min, scoring.max)
