from wealthsync.models.base import Base
from wealthsync.models.asset import Asset
from wealthsync.models.bank_connection import BankConnection
from wealthsync.models.runs import SyncRun
from wealthsync.models.snapshots import WealthSnapshot

__all__ = [
    "Base",
    "Asset",
    "BankConnection",
    "SyncRun",
    "WealthSnapshot",
]
