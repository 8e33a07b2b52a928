"""API dependencies"""

from fastapi import Depends
from sqlalchemy.orm import Session

from wealthsync.core.config import Settings, get_settings
from wealthsync.core.db import get_db
from wealthsync.services import (
    BankService,
    ManualAssetService,
    MarketService,
    NetworthService,
    WalletService,
    WebhookService,
)

__all__ = [
    "get_db",
    "get_settings",
    "get_wallet_service",
    "get_market_service",
    "get_bank_service",
    "get_manual_service",
    "get_networth_service",
    "get_webhook_service",
]


def get_wallet_service(db: Session = Depends(get_db), settings: Settings = Depends(get_settings)) -> WalletService:
    return WalletService(db, settings)


def get_market_service(db: Session = Depends(get_db), settings: Settings = Depends(get_settings)) -> MarketService:
    return MarketService(db, settings)


def get_bank_service(db: Session = Depends(get_db), settings: Settings = Depends(get_settings)) -> BankService:
    return BankService(db, settings)


def get_manual_service(db: Session = Depends(get_db)) -> ManualAssetService:
    return ManualAssetService(db)


def get_networth_service(db: Session = Depends(get_db), settings: Settings = Depends(get_settings)) -> NetworthService:
    return NetworthService(db, settings)


def get_webhook_service(db: Session = Depends(get_db), settings: Settings = Depends(get_settings)) -> WebhookService:
    return WebhookService(db, settings)
