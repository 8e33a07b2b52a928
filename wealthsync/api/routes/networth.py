"""Net worth routes - Portfolio view and price refresh."""

from fastapi import APIRouter, Depends

from wealthsync.api.deps import get_networth_service
from wealthsync.schemas.api import NetworthRequest, PriceRefreshRequest
from wealthsync.services import NetworthService

router = APIRouter(tags=["networth"])


@router.post("/networth")
async def get_networth(request: NetworthRequest, service: NetworthService = Depends(get_networth_service)):
    """
    Build the user's net-worth view.

    Returns the total, breakdowns by type/provider/country/sector, the
    snapshot-based daily change plus realized P&L, the ranked asset list and
    diversification insights. ``forceRefresh`` re-prices wallets and stocks
    first.
    """
    return await service.get_networth(request.user_id, force_refresh=request.force_refresh)


@router.post("/prices/refresh")
async def refresh_prices(request: PriceRefreshRequest, service: NetworthService = Depends(get_networth_service)):
    """Re-sync wallet and stock prices for one user."""
    return await service.refresh_prices(request.user_id)
