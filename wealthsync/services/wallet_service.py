"""Wallet tracking: stream registration, address lifecycle and re-sync."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from wealthsync.core.config import Settings
from wealthsync.core.errors import InvalidRequestError, UpstreamProviderError
from wealthsync.core.logging import get_logger
from wealthsync.ingestion.wallet_source import WalletChainSource
from wealthsync.schemas.holdings import Provider
from wealthsync.services.asset_service import AssetService
from wealthsync.services.filters import AdmissibilityFilter
from wealthsync.services.snapshot_service import SnapshotRecorder
from wealthsync.services.sync_service import SyncResult, SyncService

log = get_logger("wallet_service")

ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")

WEBHOOK_PATH = "webhooks/wallet"


def clean_address(address: Optional[str]) -> str:
    if not address:
        raise InvalidRequestError("address is required", field="address")
    address = address.strip()
    if not ADDRESS_RE.match(address):
        raise InvalidRequestError(f"Invalid wallet address: {address}", field="address")
    return address.lower()


class WalletService:
    def __init__(self, db: Session, settings: Settings, source: Optional[WalletChainSource] = None):
        self.db = db
        self.settings = settings
        self._source = source
        self.assets = AssetService(db)
        self.snapshots = SnapshotRecorder(db)

    @property
    def source(self) -> WalletChainSource:
        # Built on first use so a missing API key fails before any provider call
        if self._source is None:
            self._source = WalletChainSource(self.settings)
        return self._source

    def _sync_service(self) -> SyncService:
        return SyncService(self.db, AdmissibilityFilter.from_thresholds(self.settings.admissibility_thresholds()))

    # -------------------------------------------------------------------------
    # Stream
    # -------------------------------------------------------------------------
    async def setup_stream(self) -> Dict[str, Any]:
        return {"success": True, "streamId": await self._stream_id()}

    async def _stream_id(self) -> str:
        stream = await self.source.ensure_stream(self.settings.webhook_url(WEBHOOK_PATH))
        return self.source.stream_id(stream)

    # -------------------------------------------------------------------------
    # Addresses
    # -------------------------------------------------------------------------
    async def add_address(self, user_id: str, address: str) -> Dict[str, Any]:
        address = clean_address(address)
        log.info(f"Adding wallet {address} for user {user_id}")

        stream_id = await self._stream_id()
        await self.source.watch_address(stream_id, address)

        result = await self._sync_service().sync(user_id, self.source, [address], action="add_address")
        result.raise_for_fetch()
        return {**result.as_response(), "count": len(result.succeeded)}

    async def remove_address(self, user_id: str, address: str) -> Dict[str, Any]:
        address = clean_address(address)
        log.info(f"Removing wallet {address} for user {user_id}")

        removed = self.assets.remove_by_prefix(user_id, f"{address}:", provider=Provider.WALLET_CHAIN.value)
        # Other users may still track the same wallet
        if not self.assets.owners_of_wallet(address):
            stream = await self.source.find_stream()
            if stream:
                await self.source.unwatch_address(self.source.stream_id(stream), address)

        self.snapshots.record_quietly(user_id)
        return {"success": True, "removed": removed}

    async def cleanup_user(self, user_id: str) -> Dict[str, Any]:
        addresses = self.assets.wallet_addresses(user_id)
        removed = self.assets.remove_all(user_id, Provider.WALLET_CHAIN.value)

        orphaned = [a for a in addresses if not self.assets.owners_of_wallet(a)]
        stream = await self.source.find_stream() if orphaned else None
        if stream:
            stream_id = self.source.stream_id(stream)
            for address in orphaned:
                try:
                    await self.source.unwatch_address(stream_id, address)
                except UpstreamProviderError as exc:
                    log.warning(f"Failed to unwatch {address}: {exc}")

        self.snapshots.record_quietly(user_id)
        return {
            "success": True,
            "removed_addresses": addresses,
            "removed": removed,
            "message": f"Cleaned up {len(addresses)} addresses for user {user_id}",
        }

    # -------------------------------------------------------------------------
    # Sync
    # -------------------------------------------------------------------------
    async def sync_user_wallets(self, user_id: str, addresses: Optional[Sequence[str]] = None) -> SyncResult:
        """Re-fetch the given wallets, or every wallet the user tracks."""
        targets: List[str] = [clean_address(a) for a in addresses] if addresses else self.assets.wallet_addresses(user_id)
        if not targets:
            return SyncResult()
        return await self._sync_service().sync(user_id, self.source, targets, action="sync")

    async def wallet_details(self, address: str, chain: str = "eth") -> Dict[str, Any]:
        return await self.source.wallet_overview(clean_address(address), chain)
