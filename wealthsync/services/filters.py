"""Anti-spam / trust gate applied before records are persisted."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from wealthsync.core.logging import get_logger
from wealthsync.schemas.holdings import AssetRecord

log = get_logger("filters")


@dataclass(frozen=True)
class AdmissibilityPolicy:
    """Two independent thresholds: too small to matter, too large to trust unverified."""

    min_value_usd: Optional[float] = None
    max_unverified_value_usd: Optional[float] = None
    # chain-native coins get their own floor; None falls back to min_value_usd
    native_min_value_usd: Optional[float] = None

    def minimum_for(self, record: AssetRecord) -> Optional[float]:
        if record.native and self.native_min_value_usd is not None:
            return self.native_min_value_usd
        return self.min_value_usd

    def rejection_reason(self, record: AssetRecord) -> Optional[str]:
        if record.spam:
            return "flagged as spam"
        minimum = self.minimum_for(record)
        if minimum is not None and record.value < minimum:
            return f"value {record.value:.2f} below minimum {minimum:.2f}"
        if (
            self.max_unverified_value_usd is not None
            and record.value > self.max_unverified_value_usd
            and not record.verified
        ):
            return f"unverified value {record.value:.2f} above {self.max_unverified_value_usd:.2f}"
        return None


class AdmissibilityFilter:
    """Applies the policy for each record's provider; providers without one only drop spam."""

    def __init__(self, policies: Mapping[str, AdmissibilityPolicy]):
        self.policies: Dict[str, AdmissibilityPolicy] = dict(policies)

    @classmethod
    def from_thresholds(cls, thresholds: Mapping[str, Mapping[str, Optional[float]]]) -> "AdmissibilityFilter":
        return cls({provider: AdmissibilityPolicy(**values) for provider, values in thresholds.items()})

    def policy_for(self, record: AssetRecord) -> AdmissibilityPolicy:
        return self.policies.get(record.provider.value, AdmissibilityPolicy())

    def is_admissible(self, record: AssetRecord) -> bool:
        return self.policy_for(record).rejection_reason(record) is None

    def apply(self, records: Iterable[AssetRecord]) -> Tuple[List[AssetRecord], List[AssetRecord]]:
        """Split into (admitted, rejected), preserving input order."""
        admitted: List[AssetRecord] = []
        rejected: List[AssetRecord] = []
        for record in records:
            reason = self.policy_for(record).rejection_reason(record)
            if reason is None:
                admitted.append(record)
            else:
                log.debug(f"Rejected {record.asset_address_or_id}: {reason}")
                rejected.append(record)
        return admitted, rejected
