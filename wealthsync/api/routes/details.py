"""Detail routes - Per-asset drill-down views."""

from fastapi import APIRouter, Depends

from wealthsync.api.deps import get_bank_service, get_manual_service, get_market_service, get_wallet_service
from wealthsync.schemas.api import BankDetailsRequest, ManualDetailsRequest, StockDetailsRequest, WalletDetailsRequest
from wealthsync.services import BankService, ManualAssetService, MarketService, WalletService

router = APIRouter(prefix="/details", tags=["details"])


@router.post("/wallet")
async def wallet_details(request: WalletDetailsRequest, service: WalletService = Depends(get_wallet_service)):
    """Net worth, P&L, token balances and recent transfers for one address."""
    return await service.wallet_details(request.address, request.chain)


@router.post("/stock")
async def stock_details(request: StockDetailsRequest, service: MarketService = Depends(get_market_service)):
    """Quote, market stats, profile and price history; quantity from the user's position."""
    return await service.stock_details(request.user_id, request.symbol)


@router.post("/bank")
async def bank_details(request: BankDetailsRequest, service: BankService = Depends(get_bank_service)):
    return await service.account_details(request.user_id, request.item_id, request.account_id)


@router.post("/manual")
def manual_details(request: ManualDetailsRequest, service: ManualAssetService = Depends(get_manual_service)):
    return service.details(request.user_id, request.asset_id)
