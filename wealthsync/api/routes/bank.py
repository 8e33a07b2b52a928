"""Bank routes - Institution linking and account sync."""

from fastapi import APIRouter, Depends, Request

from wealthsync.api.deps import get_bank_service
from wealthsync.core.logging import get_logger
from wealthsync.schemas.api import BankExchange, BankLinkToken, BankRemoveItem, BankRequest
from wealthsync.services import BankService

router = APIRouter(prefix="/bank", tags=["bank"])
log = get_logger("bank_routes")


@router.post("")
async def bank_action(request: Request, body: BankRequest, service: BankService = Depends(get_bank_service)):
    """
    Link and sync bank institutions.

    Actions:
    - create_link_token: start the provider's link flow
    - exchange: trade a public token for stored credentials, then sync
    - sync: re-fetch balances for a linked item
    - remove_item: disconnect an institution
    """
    request.state.action = body.action
    log.info(f"Bank action: {body.action}")

    if isinstance(body, BankLinkToken):
        return await service.create_link_token(body.user_id)
    if isinstance(body, BankExchange):
        return await service.exchange(body.user_id, body.public_token, body.institution_name)
    if isinstance(body, BankRemoveItem):
        return await service.remove_item(body.user_id, body.item_id)

    result = await service.sync_item(body.item_id, body.user_id)
    return result.as_response()
