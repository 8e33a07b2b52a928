"""Stats routes - Sync observability and wealth history."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from wealthsync.api.deps import get_db
from wealthsync.models.runs import SyncRun
from wealthsync.schemas.api import SnapshotOut, StatsResponse
from wealthsync.services import AssetService, SnapshotRecorder

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("", response_model=list[StatsResponse])
def get_sync_stats(
    provider: Optional[str] = Query(None, description="Filter by provider (moralis, fmp, plaid)"),
    status: Optional[str] = Query(None, description="Filter by status (running, success, partial, failure)"),
    user_id: Optional[str] = Query(None, description="Filter by user"),
    limit: int = Query(10, ge=1, le=50, description="Number of runs to return"),
    db: Session = Depends(get_db),
):
    """
    Get recent sync run statistics.

    Shows per-run succeeded/failed counts, status and error messages.
    Use this for monitoring provider health and debugging partial syncs.
    """
    stmt = select(SyncRun)
    if provider:
        stmt = stmt.where(SyncRun.provider == provider)
    if status:
        stmt = stmt.where(SyncRun.status == status)
    if user_id:
        stmt = stmt.where(SyncRun.user_id == user_id)
    runs = db.execute(stmt.order_by(SyncRun.started_at.desc()).limit(limit)).scalars().all()
    return [StatsResponse.model_validate(run) for run in runs]


@router.get("/assets")
def get_asset_counts(db: Session = Depends(get_db)):
    """Active asset and user counts."""
    assets = AssetService(db)
    return {"active_assets": assets.count_active(), "users": len(assets.users_with_assets())}


@router.get("/snapshots/{user_id}", response_model=list[SnapshotOut])
def get_snapshots(
    user_id: str,
    limit: int = Query(30, ge=1, le=365, description="Number of snapshots to return"),
    db: Session = Depends(get_db),
):
    """Wealth history, newest first."""
    return [SnapshotOut.model_validate(s) for s in SnapshotRecorder(db).history(user_id, limit=limit)]
