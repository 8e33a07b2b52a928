"""Stock/ETF actions: search, quotes, positions and price refresh."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from wealthsync.core.config import Settings
from wealthsync.core.errors import InvalidRequestError, UpstreamProviderError
from wealthsync.core.logging import get_logger
from wealthsync.ingestion.market_source import MarketDataSource, MarketPosition
from wealthsync.schemas.holdings import AssetStatus, Provider
from wealthsync.services.asset_service import AssetService
from wealthsync.services.filters import AdmissibilityFilter
from wealthsync.services.normalizer import NormalizeContext, normalize
from wealthsync.services.snapshot_service import SnapshotRecorder
from wealthsync.services.sync_service import SyncResult, SyncService

log = get_logger("market_service")


def _symbol(symbol: Optional[str]) -> str:
    if not symbol or not symbol.strip():
        raise InvalidRequestError("symbol is required", field="symbol")
    return symbol.strip().upper()


def split_symbols(symbols: Any) -> List[str]:
    """Accepts "AAPL,MSFT" or ["AAPL", "MSFT"]."""
    if isinstance(symbols, str):
        symbols = symbols.split(",")
    cleaned = [s.strip().upper() for s in symbols or [] if s and s.strip()]
    if not cleaned:
        raise InvalidRequestError("symbols is required", field="symbols")
    return cleaned


class MarketService:
    def __init__(self, db: Session, settings: Settings, source: Optional[MarketDataSource] = None):
        self.db = db
        self.settings = settings
        self._source = source
        self.assets = AssetService(db)
        self.snapshots = SnapshotRecorder(db)
        self.admissibility = AdmissibilityFilter.from_thresholds(settings.admissibility_thresholds())

    @property
    def source(self) -> MarketDataSource:
        if self._source is None:
            self._source = MarketDataSource(self.settings)
        return self._source

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------
    async def search(self, query: str) -> List[Dict[str, Any]]:
        if not query or not query.strip():
            raise InvalidRequestError("query is required", field="query")
        return await self.source.search(query.strip())

    async def get_quotes(self, symbols: Any) -> List[Dict[str, Any]]:
        quotes = await self.source.get_quotes(split_symbols(symbols))
        return list(quotes.values())

    async def get_profile(self, symbol: str) -> Dict[str, Any]:
        return await self.source.get_profile(_symbol(symbol))

    async def get_history(self, symbol: str) -> Dict[str, Any]:
        symbol = _symbol(symbol)
        return {"symbol": symbol, "history": await self.source.price_history(symbol)}

    # -------------------------------------------------------------------------
    # Positions
    # -------------------------------------------------------------------------
    async def add_asset(self, user_id: str, symbol: str, quantity: float) -> Dict[str, Any]:
        """Add shares to a position; an existing active position is topped up."""
        symbol = _symbol(symbol)
        if quantity is None or quantity <= 0:
            raise InvalidRequestError("quantity must be greater than 0", field="quantity")

        existing = self.assets.get_by_key(user_id, f"fmp:{symbol}")
        total_quantity = quantity
        if existing is not None and existing.status == AssetStatus.ACTIVE.value:
            total_quantity += existing.quantity or 0.0
            log.info(f"{symbol} already held by {user_id}, quantity {existing.quantity} -> {total_quantity}")

        # unlike a refresh, adding requires a known profile
        quotes, profile, history = await asyncio.gather(
            self.source.get_quotes([symbol]),
            self.source.get_profile(symbol),
            self.source.price_history(symbol),
        )
        holding = self.source.to_holding(
            MarketPosition(symbol=symbol, quantity=total_quantity), quotes.get(symbol), profile
        )
        holding.country = holding.country or "US"

        record = normalize(holding, NormalizeContext(user_id=user_id))
        record.sparkline = history or None
        reason = self.admissibility.policy_for(record).rejection_reason(record)
        if reason:
            raise InvalidRequestError(f"{symbol} rejected: {reason}", field="symbol")

        self.assets.upsert(record)
        self.snapshots.record_quietly(user_id)
        return {
            "success": True,
            "message": "Asset added successfully",
            "asset": {
                "symbol": record.symbol,
                "name": record.name,
                "quantity": record.quantity,
                "price": record.price_usd,
                "value": record.value,
                "sector": record.sector,
                "country": record.country,
            },
        }

    async def update_prices(self, user_id: str) -> SyncResult:
        """Re-quote every active position; one symbol failing leaves the others updated."""
        positions = [
            MarketPosition(
                symbol=asset.symbol,
                quantity=asset.quantity or 0.0,
                sector=asset.sector,
                industry=asset.industry,
                country=asset.country,
                is_etf=asset.type == "etf",
            )
            for asset in self.assets.list_active(user_id, provider=Provider.MARKET_DATA.value)
            if asset.symbol
        ]
        if not positions:
            return SyncResult()
        await self.source.prime_quotes([p.symbol for p in positions])
        return await SyncService(self.db, self.admissibility).sync(
            user_id, self.source, positions, action="update_prices"
        )

    def remove_asset(self, user_id: str, asset_id: str) -> Dict[str, Any]:
        if not asset_id:
            raise InvalidRequestError("assetId is required", field="assetId")
        asset = self.assets.remove(user_id, asset_id)
        self.snapshots.record_quietly(user_id)
        return {"success": True, "message": "Asset removed successfully", "removed_asset": asset.symbol}

    # -------------------------------------------------------------------------
    # Details
    # -------------------------------------------------------------------------
    async def stock_details(self, user_id: str, symbol: str) -> Dict[str, Any]:
        symbol = _symbol(symbol)
        quotes, profile, history = await asyncio.gather(
            self.source.get_quotes([symbol]),
            self.source.find_profile(symbol),
            self.source.price_history(symbol),
        )
        quote = quotes.get(symbol)
        if not quote:
            raise UpstreamProviderError(self.source.name, f"Market data not found for {symbol}")
        profile = profile or {}

        asset = self.assets.get_by_key(user_id, f"fmp:{symbol}")
        quantity = asset.quantity if asset is not None and asset.status == AssetStatus.ACTIVE.value else 0.0
        price = quote.get("price") or 0.0
        return {
            "symbol": symbol,
            "name": profile.get("companyName") or quote.get("name") or symbol,
            "currentPrice": price,
            "change24h": quote.get("changesPercentage") or 0.0,
            "quantity": quantity,
            "totalValueUsd": price * quantity,
            "marketStats": {
                "peRatio": quote.get("pe"),
                "marketCap": quote.get("marketCap"),
                "week52High": quote.get("yearHigh"),
                "week52Low": quote.get("yearLow"),
                "volume": quote.get("volume"),
                "avgVolume": quote.get("avgVolume"),
                "dividendYield": profile.get("lastDiv"),
                "eps": quote.get("eps"),
            },
            "diversification": {
                "sector": profile.get("sector") or "Other",
                "industry": profile.get("industry") or "Other",
                "country": profile.get("country") or "US",
            },
            "description": profile.get("description") or "No description available for this asset.",
            "priceHistory": history,
        }
