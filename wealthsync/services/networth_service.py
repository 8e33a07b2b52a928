"""NetworthView: totals, breakdowns, performance, ranked assets and insights."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from wealthsync.core.clock import utcnow
from wealthsync.core.config import Settings
from wealthsync.core.errors import WealthSyncError
from wealthsync.core.logging import get_logger
from wealthsync.ingestion.market_source import MarketDataSource
from wealthsync.ingestion.wallet_source import WalletChainSource
from wealthsync.models.asset import Asset
from wealthsync.schemas.holdings import AssetRecord
from wealthsync.services.asset_service import AssetService
from wealthsync.services.insights import generate_insights
from wealthsync.services.market_service import MarketService
from wealthsync.services.snapshot_service import SnapshotRecorder
from wealthsync.services.valuation import aggregate, performance_summary
from wealthsync.services.wallet_service import WalletService

log = get_logger("networth_service")


class NetworthService:
    def __init__(
        self,
        db: Session,
        settings: Settings,
        wallet_source: Optional[WalletChainSource] = None,
        market_source: Optional[MarketDataSource] = None,
    ):
        self.db = db
        self.settings = settings
        self.wallet_source = wallet_source
        self.market_source = market_source
        self.assets = AssetService(db)
        self.snapshots = SnapshotRecorder(db)

    async def refresh_prices(self, user_id: str) -> Dict[str, Any]:
        """Re-sync the user's wallets and market positions; one provider failing spares the other."""
        results: Dict[str, Any] = {}
        refreshers = {
            "wallets": lambda: WalletService(self.db, self.settings, self.wallet_source).sync_user_wallets(user_id),
            "stocks": lambda: MarketService(self.db, self.settings, self.market_source).update_prices(user_id),
        }
        for name, refresh in refreshers.items():
            try:
                results[name] = (await refresh()).as_response()
            except WealthSyncError as exc:
                log.error(f"Price refresh ({name}) failed for {user_id}: {exc}")
                results[name] = {"success": False, "error": exc.title, "message": exc.message}
        return {"success": all(r.get("success") for r in results.values()), **results}

    async def get_networth(self, user_id: str, force_refresh: bool = False) -> Dict[str, Any]:
        refresh = await self.refresh_prices(user_id) if force_refresh else None

        now = utcnow()
        assets = self.assets.list_active(user_id)
        records = [AssetRecord.model_validate(a) for a in assets]
        totals = aggregate(records)
        insights = generate_insights(
            totals.by_type,
            totals.by_provider,
            totals.by_country,
            totals.by_sector,
            totals.total,
            records,
            now=now,
        )

        view = {
            "total": {"value": totals.total, "currency": "USD", "updated_at": now.isoformat()},
            "breakdown": {
                "by_type": totals.by_type,
                "by_provider": totals.by_provider,
                "by_country": totals.by_country,
                "by_sector": totals.by_sector,
            },
            "performance": {
                # snapshot-based and live-field changes are separate metrics
                "daily_change": self.snapshots.daily_change(user_id, totals.total, now=now),
                "total_pnl": performance_summary(records),
            },
            "assets": _ranked(assets),
            "insights": {
                "diversification_score": insights.diversification_score,
                "risk_level": insights.risk_level,
                "concentration_warnings": insights.warnings,
                "update_status": insights.update_status,
            },
        }
        if refresh is not None:
            view["refresh"] = refresh

        # recorded after the daily change so it never serves as its own baseline
        self.snapshots.record_quietly(user_id)
        return view


def _ranked(assets: List[Asset]) -> List[Dict[str, Any]]:
    rows = [
        {
            "id": a.id,
            "name": a.name,
            "symbol": a.symbol or "N/A",
            "type": a.type,
            "provider": a.provider,
            "value": a.balance_usd or 0.0,
            "quantity": a.quantity or 0.0,
            "price": a.price_usd or 0.0,
            "change_24h": a.change_24h or 0.0,
            "pnl_usd": a.realized_pnl_usd or 0.0,
            "pnl_percent": a.realized_pnl_percent or 0.0,
            "icon_url": a.icon_url or "",
            "country": a.country or "",
            "sector": a.sector or "",
            "sparkline": a.sparkline or [],
            "last_updated": (a.last_sync or a.updated_at).isoformat() if (a.last_sync or a.updated_at) else None,
        }
        for a in assets
    ]
    return sorted(rows, key=lambda row: (-row["value"], row["id"]))
