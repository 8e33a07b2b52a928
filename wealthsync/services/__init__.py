# Services package
from wealthsync.services.asset_service import AssetService
from wealthsync.services.bank_service import BankService
from wealthsync.services.manual_service import ManualAssetService
from wealthsync.services.market_service import MarketService
from wealthsync.services.networth_service import NetworthService
from wealthsync.services.snapshot_service import SnapshotRecorder
from wealthsync.services.sync_service import SyncResult, SyncService
from wealthsync.services.wallet_service import WalletService
from wealthsync.services.webhook_service import WebhookService

__all__ = [
    "AssetService",
    "BankService",
    "ManualAssetService",
    "MarketService",
    "NetworthService",
    "SnapshotRecorder",
    "SyncResult",
    "SyncService",
    "WalletService",
    "WebhookService",
]
