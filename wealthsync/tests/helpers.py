"""Record builders and mocked provider transports for tests."""

from datetime import timedelta
from typing import Callable, Dict, Optional

import httpx

from wealthsync.core.clock import utcnow
from wealthsync.schemas.holdings import AssetRecord, Provider

WALLET = "0x1111111111111111111111111111111111111111"
USDC = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"
SCAM = "0x2222222222222222222222222222222222222222"


def record(
    key: str,
    value: float,
    *,
    user_id: str = "user-1",
    provider: Provider = Provider.MANUAL,
    type: str = "cash",
    country: Optional[str] = None,
    sector: Optional[str] = None,
    age: timedelta = timedelta(0),
    **extra,
) -> AssetRecord:
    """AssetRecord builder for pure-function tests."""
    return AssetRecord(
        user_id=user_id,
        asset_address_or_id=key,
        provider=provider,
        type=type,
        symbol=extra.pop("symbol", key.upper()),
        name=extra.pop("name", key),
        quantity=extra.pop("quantity", 1.0),
        price_usd=extra.pop("price_usd", abs(value)),
        balance_usd=value,
        country=country,
        sector=sector,
        last_sync=utcnow() - age,
        **extra,
    )


def json_transport(routes: Dict[str, Callable[[httpx.Request], httpx.Response]]) -> httpx.MockTransport:
    """MockTransport dispatching on the longest matching path fragment; unknown paths 404."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        matches = [fragment for fragment in routes if fragment in request.url.path]
        if not matches:
            return httpx.Response(404, json={"message": f"no route for {request.url.path}"})
        return routes[max(matches, key=len)](request)

    transport = httpx.MockTransport(handler)
    transport.calls = calls
    return transport


def ok(payload) -> Callable[[httpx.Request], httpx.Response]:
    return lambda request: httpx.Response(200, json=payload)


# -----------------------------------------------------------------------------
# Provider payloads
# -----------------------------------------------------------------------------


def moralis_routes() -> Dict[str, Callable[[httpx.Request], httpx.Response]]:
    return {
        "/net-worth": ok(
            {
                "total_networth_usd": "1250.00",
                "chains": [
                    {"chain": "eth", "native_balance_formatted": "0.5", "native_balance_usd": "1000.00"},
                    {"chain": "polygon", "native_balance_formatted": "1.0", "native_balance_usd": "0.40"},
                ],
            }
        ),
        "/tokens": ok(
            {
                "result": [
                    {
                        "token_address": USDC.upper().replace("0X", "0x"),
                        "symbol": "USDC",
                        "name": "USD Coin",
                        "balance_formatted": "250",
                        "usd_price": 1.0,
                        "usd_value": 250.0,
                        "usd_price_24hr_percent_change": "0.1",
                        "verified_contract": True,
                        "possible_spam": False,
                    },
                    {
                        "token_address": SCAM,
                        "symbol": "SCAM",
                        "name": "Free Money",
                        "balance_formatted": "1200000",
                        "usd_price": 0.05,
                        "usd_value": 60000.0,
                        "verified_contract": False,
                        "possible_spam": False,
                    },
                    {"native_token": True, "symbol": "ETH", "usd_value": 1000.0},
                ]
            }
        ),
        "/profitability": ok(
            {"result": [{"token_address": USDC, "realized_profit_usd": "12.5", "realized_profit_percentage": "5"}]}
        ),
    }


def fmp_routes(price: float = 200.0) -> Dict[str, Callable[[httpx.Request], httpx.Response]]:
    def quote(request: httpx.Request) -> httpx.Response:
        symbols = request.url.path.rsplit("/", 1)[-1].split(",")
        return httpx.Response(
            200,
            json=[
                {"symbol": s, "name": f"{s} Inc.", "price": price, "changesPercentage": 1.5, "pe": 30.1}
                for s in symbols
                if s != "MISSING"
            ],
        )

    def profile(request: httpx.Request) -> httpx.Response:
        symbol = request.url.path.rsplit("/", 1)[-1]
        return httpx.Response(
            200,
            json=[
                {
                    "symbol": symbol,
                    "companyName": f"{symbol} Inc.",
                    "sector": "Technology",
                    "industry": "Consumer Electronics",
                    "country": "US",
                    "isEtf": symbol == "SPY",
                    "image": f"https://img.example.com/{symbol}.png",
                }
            ],
        )

    return {
        "/quote/": quote,
        "/profile/": profile,
        "/historical-chart/1hour": ok([{"close": 3.0}, {"close": 2.0}, {"close": 1.0}]),
        "/historical-price-eod/light": ok([{"price": 9.0}]),
    }
