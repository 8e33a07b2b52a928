"""Sync pipeline: fetch -> normalize -> filter -> upsert -> snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from wealthsync.core.clock import utcnow
from wealthsync.core.errors import PersistenceError, WealthSyncError
from wealthsync.core.logging import get_logger
from wealthsync.ingestion.base import BaseSource
from wealthsync.ingestion.runner import IngestionRunner
from wealthsync.models.runs import SyncRun
from wealthsync.schemas.holdings import AssetRecord
from wealthsync.services.asset_service import AssetService
from wealthsync.services.filters import AdmissibilityFilter
from wealthsync.services.normalizer import NormalizeContext, normalize
from wealthsync.services.snapshot_service import SnapshotRecorder

log = get_logger("sync_service")


@dataclass
class SyncResult:
    succeeded: List[str] = field(default_factory=list)
    failed: List[Dict[str, str]] = field(default_factory=list)
    rejected: int = 0
    records: List[AssetRecord] = field(default_factory=list)
    snapshot_recorded: bool = False
    fetch_errors: List[WealthSyncError] = field(default_factory=list)

    def raise_for_fetch(self) -> None:
        """Single-identity callers fail the request when the fetch failed."""
        if self.fetch_errors:
            raise self.fetch_errors[0]

    @property
    def status(self) -> str:
        if not self.failed:
            return "success"
        return "partial" if self.succeeded else "failure"

    def as_response(self) -> Dict[str, Any]:
        return {
            "success": not self.failed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "rejected": self.rejected,
        }


class SyncService:
    """Runs one provider's identities through the pipeline for one user.

    Fetch failures are per identity and persistence failures per record; both
    end up in ``failed`` while the rest of the batch is still written.
    """

    def __init__(self, db: Session, admissibility: AdmissibilityFilter):
        self.db = db
        self.assets = AssetService(db)
        self.snapshots = SnapshotRecorder(db)
        self.admissibility = admissibility

    async def sync(self, user_id: str, source: BaseSource, identities: Sequence[Any], action: str) -> SyncResult:
        run = self._start_run(user_id, source.name, action)
        result = SyncResult()
        try:
            outcomes = await IngestionRunner(source).run(identities)

            now = utcnow()
            normalized: List[AssetRecord] = []
            for outcome in outcomes:
                if not outcome.ok:
                    result.fetch_errors.append(outcome.error)
                    result.failed.append({"identity": outcome.label, "stage": "fetch", "error": str(outcome.error)})
                    continue
                context = NormalizeContext(user_id=user_id, now=now, performance=outcome.performance)
                normalized.extend(normalize(raw, context) for raw in outcome.holdings)

            admitted, rejected = self.admissibility.apply(normalized)
            result.rejected = len(rejected)

            upserted = self.assets.upsert_many(admitted)
            result.succeeded.extend(upserted.succeeded)
            result.failed.extend(upserted.failed)
            written = set(upserted.succeeded)
            result.records = [r for r in admitted if r.asset_address_or_id in written]

            if result.succeeded:
                result.snapshot_recorded = self.snapshots.record_quietly(user_id)

            log.info(
                f"Sync {source.name}/{action} for {user_id}: "
                f"succeeded={len(result.succeeded)} failed={len(result.failed)} rejected={result.rejected}"
            )
        except Exception as exc:  # noqa: BLE001
            self._finish_run(run, "failure", result, str(exc))
            raise

        self._finish_run(run, result.status, result)
        return result

    # -------------------------------------------------------------------------
    # Run tracking
    # -------------------------------------------------------------------------
    def _start_run(self, user_id: Optional[str], provider: str, action: str) -> SyncRun:
        run = SyncRun(user_id=user_id, provider=provider, action=action, status="running", started_at=utcnow())
        try:
            self.db.add(run)
            self.db.commit()
            self.db.refresh(run)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError(f"Failed to start sync run: {exc}") from exc
        return run

    def _finish_run(self, run: SyncRun, status: str, result: SyncResult, error: Optional[str] = None) -> None:
        run.status = status
        run.succeeded = len(result.succeeded)
        run.failed = len(result.failed)
        run.error_message = error or "; ".join(f["error"] for f in result.failed)[:1000] or None
        run.meta = {"rejected": result.rejected, "snapshot_recorded": result.snapshot_recorded}
        run.ended_at = utcnow()
        try:
            self.db.add(run)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            log.error(f"Failed to finish sync run {run.run_id}: {exc}")
