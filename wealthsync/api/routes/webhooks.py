"""Webhook routes - Provider pushes, verified against the raw body."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from wealthsync.api.deps import get_webhook_service
from wealthsync.services import WebhookService

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/wallet")
async def wallet_webhook(
    request: Request,
    x_signature: Optional[str] = Header(None),
    service: WebhookService = Depends(get_webhook_service),
):
    """Wallet stream events; confirmed blocks re-sync every tracked address they touch."""
    body = await request.body()
    return await service.handle_wallet(body, x_signature)


@router.post("/bank")
async def bank_webhook(
    request: Request,
    x_signature: Optional[str] = Header(None),
    service: WebhookService = Depends(get_webhook_service),
):
    """Bank item events; balance updates trigger an item sync."""
    body = await request.body()
    return await service.handle_bank(body, x_signature)
