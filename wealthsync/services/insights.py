"""Portfolio insights: diversification score, risk level, concentration warnings."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Literal, Mapping, Optional, Sequence, Tuple

from wealthsync.core.clock import as_utc, utcnow
from wealthsync.schemas.holdings import AssetRecord

UpdateStatus = Literal["fresh", "stale", "mixed"]
RiskLevel = Literal["low", "medium", "high"]

RISK_ORDER: Dict[str, int] = {"low": 0, "medium": 1, "high": 2}

FRESH_WINDOW = timedelta(hours=24)

CRYPTO_WARNING_PCT = 50.0
COUNTRY_WARNING_PCT = 60.0
SECTOR_WARNING_PCT = 40.0
CRYPTO_HIGH_RISK_PCT = 40.0
CRYPTO_MEDIUM_RISK_PCT = 20.0
TYPE_CONCENTRATION_RATIO = 0.7


@dataclass
class Insights:
    diversification_score: float = 0.0
    risk_level: RiskLevel = "low"
    warnings: List[str] = field(default_factory=list)
    update_status: UpdateStatus = "fresh"


def update_status(records: Sequence[AssetRecord], now: Optional[datetime] = None) -> UpdateStatus:
    """A record is fresh when synced within 24h; one never synced is stale."""
    now = now or utcnow()
    fresh = sum(1 for r in records if r.last_sync is not None and now - as_utc(r.last_sync) <= FRESH_WINDOW)
    if fresh == len(records):
        return "fresh"
    if fresh == 0:
        return "stale"
    return "mixed"


def _share(value: float, total: float) -> float:
    return value / total * 100.0 if total > 0 else 0.0


def _top(groups: Mapping[str, float]) -> Optional[Tuple[str, float]]:
    if not groups:
        return None
    # ties resolve alphabetically so the warning is stable
    return max(sorted(groups.items()), key=lambda item: item[1])


def generate_insights(
    by_type: Mapping[str, float],
    by_provider: Mapping[str, float],
    by_country: Mapping[str, float],
    by_sector: Mapping[str, float],
    total: float,
    records: Sequence[AssetRecord],
    now: Optional[datetime] = None,
) -> Insights:
    status = update_status(records, now)
    warnings: List[str] = []

    crypto_pct = _share(by_type.get("crypto", 0.0), total)
    if crypto_pct > CRYPTO_WARNING_PCT:
        warnings.append(f"High crypto exposure: {crypto_pct:.1f}% of portfolio")

    top_country = _top(by_country)
    if top_country:
        pct = _share(top_country[1], total)
        if pct > COUNTRY_WARNING_PCT:
            warnings.append(f"Heavy concentration in {top_country[0]}: {pct:.1f}%")

    top_sector = _top(by_sector)
    if top_sector:
        pct = _share(top_sector[1], total)
        if pct > SECTOR_WARNING_PCT:
            warnings.append(f"Sector concentration in {top_sector[0]}: {pct:.1f}%")

    score = 0.0
    if total > 0:
        score += min(5, len(by_type))
        score += min(3, len(by_provider))
        if len(by_country) > 1:
            score += 1
        if len(by_sector) > 1:
            score += 1
        if by_type and max(by_type.values()) / total > TYPE_CONCENTRATION_RATIO:
            score *= 0.7
    score = round(min(10.0, max(0.0, score)), 1)

    if crypto_pct > CRYPTO_HIGH_RISK_PCT or len(warnings) > 2 or status == "stale":
        risk: RiskLevel = "high"
    elif crypto_pct > CRYPTO_MEDIUM_RISK_PCT or warnings or status == "mixed":
        risk = "medium"
    else:
        risk = "low"

    return Insights(diversification_score=score, risk_level=risk, warnings=warnings, update_status=status)
