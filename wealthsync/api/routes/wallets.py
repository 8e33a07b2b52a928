"""Wallet routes - Stream registration and tracked-address lifecycle."""

from fastapi import APIRouter, Depends, Request

from wealthsync.api.deps import get_wallet_service
from wealthsync.core.logging import get_logger
from wealthsync.schemas.api import (
    WalletAddAddress,
    WalletCleanupUser,
    WalletRemoveAddress,
    WalletRequest,
    WalletSetup,
)
from wealthsync.services import WalletService

router = APIRouter(prefix="/wallets", tags=["wallets"])
log = get_logger("wallet_routes")


@router.post("")
async def wallet_action(request: Request, body: WalletRequest, service: WalletService = Depends(get_wallet_service)):
    """
    Manage tracked wallets.

    Actions:
    - setup: create the global stream (or return the existing one)
    - add_address: watch an address and import its holdings
    - remove_address: stop tracking an address for one user
    - cleanup_user: drop every wallet a user tracks
    - sync: re-fetch the user's wallets
    """
    request.state.action = body.action
    log.info(f"Wallet action: {body.action}")

    if isinstance(body, WalletSetup):
        return await service.setup_stream()
    if isinstance(body, WalletAddAddress):
        return await service.add_address(body.user_id, body.address)
    if isinstance(body, WalletRemoveAddress):
        return await service.remove_address(body.user_id, body.address)
    if isinstance(body, WalletCleanupUser):
        return await service.cleanup_user(body.user_id)

    result = await service.sync_user_wallets(body.user_id, body.addresses)
    return result.as_response()
