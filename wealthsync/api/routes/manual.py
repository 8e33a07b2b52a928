"""Manual asset routes."""

from fastapi import APIRouter, Depends, Request

from wealthsync.api.deps import get_manual_service
from wealthsync.schemas.api import ManualAdd, ManualRequest, ManualUpdate
from wealthsync.services import ManualAssetService

router = APIRouter(prefix="/manual-assets", tags=["manual"])

_UPDATABLE = {"name", "category", "value", "quantity", "currency", "details"}


@router.post("")
def manual_action(request: Request, body: ManualRequest, service: ManualAssetService = Depends(get_manual_service)):
    """Add, update (partial) or remove a user-entered asset or liability."""
    request.state.action = body.action
    if isinstance(body, ManualAdd):
        return service.add(
            body.user_id,
            name=body.name,
            category=body.category,
            value=body.value,
            quantity=body.quantity,
            currency=body.currency,
            details=body.details,
        )
    if isinstance(body, ManualUpdate):
        changes = body.model_dump(include=_UPDATABLE, exclude_none=True)
        return service.update(body.user_id, body.asset_id, changes)
    return service.remove(body.user_id, body.asset_id)
