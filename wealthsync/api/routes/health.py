"""Health routes - database reachability, provider configuration and the latest sync."""

from typing import Dict, Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from wealthsync.api.deps import get_db, get_settings
from wealthsync.core.clock import as_utc, utcnow
from wealthsync.core.config import Settings
from wealthsync.models.runs import SyncRun
from wealthsync.schemas.api import HealthResponse

router = APIRouter(prefix="/health", tags=["health"])


def database_error(db: Session) -> Optional[str]:
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        return str(e)
    return None


def configured_providers(settings: Settings) -> Dict[str, bool]:
    """Which integrations have credentials; a missing one fails its routes with 500."""
    return {
        "moralis": bool(settings.MORALIS_API_KEY),
        "fmp": bool(settings.FMP_API_KEY),
        "plaid": bool(settings.PLAID_CLIENT_ID and settings.PLAID_SECRET),
        "credential_encryption": bool(settings.ENCRYPTION_KEY),
    }


@router.get("", response_model=HealthResponse)
def health(response: Response, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    """
    Health check for load balancers.

    Returns 503 when the database is unreachable; otherwise reports the
    most recent sync run and which providers are configured.
    """
    providers = configured_providers(settings)
    error = database_error(db)
    if error:
        response.status_code = 503
        return HealthResponse(database=f"down: {error}", providers=providers)

    last_run = db.execute(select(SyncRun).order_by(SyncRun.started_at.desc()).limit(1)).scalar_one_or_none()
    if last_run is None:
        return HealthResponse(database="ok", providers=providers)
    return HealthResponse(
        database="ok",
        last_sync_status=last_run.status,
        last_sync_provider=last_run.provider,
        last_sync_at=as_utc(last_run.started_at),
        providers=providers,
    )


@router.get("/ready")
def readiness(response: Response, db: Session = Depends(get_db)):
    """Readiness probe: 200 once the database answers, 503 before."""
    error = database_error(db)
    body = {"status": "ready" if error is None else "not_ready", "timestamp": utcnow().isoformat()}
    if error:
        response.status_code = 503
        body["error"] = error
    return body
