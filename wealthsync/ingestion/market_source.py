"""Market-data source (Financial Modeling Prep)."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx

from wealthsync.core.config import Settings
from wealthsync.core.errors import NotFoundError, UpstreamProviderError
from wealthsync.core.logging import get_logger
from wealthsync.schemas.holdings import MarketHolding
from .base import BaseSource, FallbackChain, to_float

log = get_logger("ingestion.market")

V3_URL = "https://financialmodelingprep.com/api/v3"
STABLE_URL = "https://financialmodelingprep.com/stable"

HISTORY_POINTS = 24


@dataclass(frozen=True)
class MarketPosition:
    """A ticker the user holds; existing tags skip the profile lookup."""

    symbol: str
    quantity: float
    sector: Optional[str] = None
    industry: Optional[str] = None
    country: Optional[str] = None
    is_etf: bool = False

    def __str__(self) -> str:
        return self.symbol

    @property
    def has_profile_tags(self) -> bool:
        return bool(self.sector or self.country)


class MarketDataSource(BaseSource):
    """Fetches quotes, company profiles and price history from FMP."""

    name = "fmp"

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        settings.require("FMP_API_KEY")
        super().__init__(timeout=settings.HTTP_TIMEOUT_SECONDS, transport=transport)
        self.api_key = settings.FMP_API_KEY
        self.batch_size = max(1, settings.FMP_BATCH_SIZE)
        # Quotes fetched ahead of a batch sync, consumed by fetch_balances
        self._primed: Dict[str, Dict[str, Any]] = {}

    async def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        query = dict(params or {})
        query["apikey"] = self.api_key
        data = await self._request("GET", url, params=query)
        # FMP reports plan/limit problems with a 200 and an error body
        if isinstance(data, dict) and data.get("Error Message"):
            raise UpstreamProviderError(self.name, str(data["Error Message"]))
        return data

    # -------------------------------------------------------------------------
    # Positions
    # -------------------------------------------------------------------------
    async def fetch_balances(self, identity: MarketPosition) -> List[MarketHolding]:
        symbol = identity.symbol.upper()
        if identity.has_profile_tags:
            quote = await self._quote(symbol)
            profile = None
        else:
            quote, profile = await asyncio.gather(self._quote(symbol), self.find_profile(symbol))
        return [self.to_holding(identity, quote, profile)]

    def to_holding(
        self, identity: MarketPosition, quote: Optional[Dict[str, Any]], profile: Optional[Dict[str, Any]]
    ) -> MarketHolding:
        symbol = identity.symbol.upper()
        if not quote:
            raise UpstreamProviderError(self.name, f"no quote returned for {symbol}")
        profile = profile or {}
        return MarketHolding(
            symbol=symbol,
            quantity=identity.quantity,
            price=to_float(quote.get("price")),
            name=quote.get("name") or profile.get("companyName"),
            change_percentage=to_float(quote.get("changesPercentage")),
            is_etf=bool(profile.get("isEtf", identity.is_etf)),
            sector=identity.sector or profile.get("sector"),
            industry=identity.industry or profile.get("industry"),
            country=identity.country or profile.get("country"),
            image=profile.get("image"),
        )

    async def _quote(self, symbol: str) -> Optional[Dict[str, Any]]:
        if symbol in self._primed:
            return self._primed.pop(symbol)
        quotes = await self.get_quotes([symbol])
        return quotes.get(symbol)

    async def prime_quotes(self, symbols: Sequence[str]) -> None:
        """Batch-fetch quotes for an upcoming sync; on failure each position fetches its own."""
        try:
            self._primed.update(await self.get_quotes(symbols))
        except UpstreamProviderError as exc:
            log.warning(f"Batched quote prefetch failed, falling back to per-symbol: {exc}")

    async def find_profile(self, symbol: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.get_profile(symbol)
        except NotFoundError:
            return None

    # -------------------------------------------------------------------------
    # Quotes & profiles
    # -------------------------------------------------------------------------
    async def get_quotes(self, symbols: Sequence[str]) -> Dict[str, Dict[str, Any]]:
        """Quotes keyed by upper-case symbol; batches go out concurrently."""
        unique = list(dict.fromkeys(s.upper() for s in symbols if s))
        if not unique:
            return {}
        batches = [unique[i : i + self.batch_size] for i in range(0, len(unique), self.batch_size)]
        results = await asyncio.gather(*(self._get(f"{V3_URL}/quote/{','.join(batch)}") for batch in batches))

        quotes: Dict[str, Dict[str, Any]] = {}
        for data in results:
            for quote in data if isinstance(data, list) else []:
                if quote.get("symbol"):
                    quotes[quote["symbol"].upper()] = quote
        log.info(f"Fetched {len(quotes)}/{len(unique)} quotes in {len(batches)} batch(es)")
        return quotes

    async def get_profile(self, symbol: str) -> Dict[str, Any]:
        data = await self._get(f"{V3_URL}/profile/{symbol.upper()}")
        if not isinstance(data, list) or not data:
            raise NotFoundError(f"No profile found for {symbol.upper()}")
        return data[0]

    async def search(self, query: str, limit: int = 20) -> List[Dict[str, Any]]:
        data = await self._get(f"{V3_URL}/search", {"query": query, "limit": limit})
        results = []
        for item in data if isinstance(data, list) else []:
            symbol = item.get("symbol") or ""
            if "." in symbol or item.get("currency") not in (None, "USD"):
                continue  # foreign listings
            results.append(
                {
                    "symbol": symbol,
                    "name": item.get("name"),
                    "exchange": item.get("exchangeShortName") or item.get("stockExchange"),
                    "currency": item.get("currency") or "USD",
                }
            )
        return results

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------
    async def price_history(self, symbol: str) -> List[float]:
        """Last closes oldest-first: hourly intraday when available, else daily."""
        symbol = symbol.upper()
        chain = FallbackChain(
            f"history:{symbol}",
            [
                ("intraday", lambda: self._intraday_closes(symbol)),
                ("eod", lambda: self._eod_closes(symbol)),
            ],
        )
        label, closes = await chain.run()
        if label:
            log.debug(f"History for {symbol} from {label}: {len(closes)} points")
        return closes

    async def _intraday_closes(self, symbol: str) -> List[float]:
        data = await self._get(f"{STABLE_URL}/historical-chart/1hour", {"symbol": symbol})
        return _closes(data if isinstance(data, list) else [])

    async def _eod_closes(self, symbol: str) -> List[float]:
        data = await self._get(f"{STABLE_URL}/historical-price-eod/light", {"symbol": symbol})
        if isinstance(data, dict):
            data = data.get("historical") or []
        return _closes(data)


def _closes(rows: List[Dict[str, Any]]) -> List[float]:
    # FMP returns newest first
    closes = []
    for row in rows[:HISTORY_POINTS]:
        value = to_float(row.get("close", row.get("price")))
        if value is not None:
            closes.append(value)
    return list(reversed(closes))
