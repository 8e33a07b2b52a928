"""Stock routes - Market data lookups and stock/ETF positions."""

from fastapi import APIRouter, Depends, Request

from wealthsync.api.deps import get_market_service
from wealthsync.core.logging import get_logger
from wealthsync.schemas.api import (
    StockAdd,
    StockHistory,
    StockProfile,
    StockQuotes,
    StockRemove,
    StockRequest,
    StockSearch,
)
from wealthsync.services import MarketService

router = APIRouter(prefix="/stocks", tags=["stocks"])
log = get_logger("stock_routes")


@router.post("")
async def stock_action(request: Request, body: StockRequest, service: MarketService = Depends(get_market_service)):
    """
    Market data and position management.

    Lookups (search, get_quotes, get_profile, get_history) return
    ``{"success": true, "data": ...}``. Position actions (add_asset,
    update_prices, remove_asset) write the user's holdings.
    """
    request.state.action = body.action
    log.info(f"Stock action: {body.action}")

    if isinstance(body, StockSearch):
        return {"success": True, "data": await service.search(body.query)}
    if isinstance(body, StockQuotes):
        return {"success": True, "data": await service.get_quotes(body.symbols)}
    if isinstance(body, StockProfile):
        return {"success": True, "data": await service.get_profile(body.symbol)}
    if isinstance(body, StockHistory):
        return {"success": True, "data": await service.get_history(body.symbol)}
    if isinstance(body, StockAdd):
        return await service.add_asset(body.user_id, body.symbol, body.quantity)
    if isinstance(body, StockRemove):
        return service.remove_asset(body.user_id, body.asset_id)

    result = await service.update_prices(body.user_id)
    return result.as_response()
