"""Net-worth aggregation over normalized records."""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from wealthsync.schemas.holdings import AssetRecord


@dataclass
class Aggregates:
    total: float = 0.0
    by_type: Dict[str, float] = field(default_factory=dict)
    by_provider: Dict[str, float] = field(default_factory=dict)
    by_country: Dict[str, float] = field(default_factory=dict)
    by_sector: Dict[str, float] = field(default_factory=dict)


def _group(records: List[AssetRecord], key: Callable[[AssetRecord], Optional[str]]) -> Dict[str, float]:
    buckets: Dict[str, List[float]] = defaultdict(list)
    for record in records:
        name = key(record)
        if name:
            buckets[name].append(record.value)
    # fsum is exact, so the result does not depend on record order
    return {name: math.fsum(values) for name, values in sorted(buckets.items())}


def aggregate(records: Iterable[AssetRecord]) -> Aggregates:
    """Total and breakdowns; untagged records only count toward the total."""
    records = list(records)
    if not records:
        return Aggregates()
    return Aggregates(
        total=math.fsum(r.value for r in records),
        by_type=_group(records, lambda r: r.type),
        by_provider=_group(records, lambda r: r.provider.value),
        by_country=_group(records, lambda r: r.country),
        by_sector=_group(records, lambda r: r.sector),
    )


def estimated_24h_change(records: Iterable[AssetRecord]) -> float:
    """Live estimate from each record's own 24h percent change."""
    return math.fsum(r.value * r.change_24h / 100.0 for r in records)


def performance_summary(records: Iterable[AssetRecord]) -> Dict[str, float]:
    records = list(records)
    realized = math.fsum(r.realized_pnl_usd for r in records)
    total = math.fsum(r.value for r in records)
    return {
        "realized_usd": realized,
        "realized_percent": (realized / total * 100.0) if total > 0 else 0.0,
        "estimated_24h": estimated_24h_change(records),
    }
