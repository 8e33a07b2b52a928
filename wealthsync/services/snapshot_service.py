"""Wealth snapshots and the snapshot-based daily change."""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from wealthsync.core.clock import utcnow
from wealthsync.core.errors import PersistenceError
from wealthsync.core.logging import get_logger
from wealthsync.models.snapshots import WealthSnapshot
from wealthsync.services.asset_service import AssetService

log = get_logger("snapshot_service")

DAY = timedelta(hours=24)


class SnapshotRecorder:
    """Appends immutable totals after each mutation of a user's holdings."""

    def __init__(self, db: Session):
        self.db = db

    def record(self, user_id: str, now: Optional[datetime] = None) -> WealthSnapshot:
        assets = AssetService(self.db).list_active(user_id)
        snapshot = WealthSnapshot(
            user_id=user_id,
            total_usd=math.fsum(a.balance_usd or 0.0 for a in assets),
            asset_count=len(assets),
            recorded_at=now or utcnow(),
        )
        try:
            self.db.add(snapshot)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError(f"Failed to record snapshot for {user_id}: {exc}") from exc
        log.debug(f"Snapshot for {user_id}: total={snapshot.total_usd:.2f} assets={snapshot.asset_count}")
        return snapshot

    def record_quietly(self, user_id: str) -> bool:
        """Snapshot after a mutation; a failure is logged and never fails the caller."""
        try:
            self.record(user_id)
        except PersistenceError as exc:
            log.warning(f"Snapshot not recorded: {exc}")
            return False
        return True

    def baseline(self, user_id: str, now: Optional[datetime] = None) -> Optional[WealthSnapshot]:
        """Newest snapshot recorded at least 24h ago."""
        cutoff = (now or utcnow()) - DAY
        stmt = (
            select(WealthSnapshot)
            .where(WealthSnapshot.user_id == user_id, WealthSnapshot.recorded_at <= cutoff)
            .order_by(WealthSnapshot.recorded_at.desc())
            .limit(1)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def daily_change(self, user_id: str, current_total: float, now: Optional[datetime] = None) -> Dict[str, Any]:
        baseline = self.baseline(user_id, now)
        if baseline is None:
            return {"amount": 0.0, "percentage": 0.0, "direction": "neutral"}
        previous = baseline.total_usd or 0.0
        amount = current_total - previous
        percentage = amount / abs(previous) * 100.0 if previous else 0.0
        direction = "up" if amount > 0 else "down" if amount < 0 else "neutral"
        return {"amount": amount, "percentage": percentage, "direction": direction}

    def history(self, user_id: str, limit: int = 30) -> List[WealthSnapshot]:
        stmt = (
            select(WealthSnapshot)
            .where(WealthSnapshot.user_id == user_id)
            .order_by(WealthSnapshot.recorded_at.desc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())
