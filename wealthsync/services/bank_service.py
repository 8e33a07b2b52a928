"""Bank linking, encrypted credential storage and account sync."""

from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from wealthsync.core.config import Settings
from wealthsync.core.crypto import TokenCipher
from wealthsync.core.errors import InvalidRequestError, NotFoundError, PersistenceError, UpstreamProviderError
from wealthsync.core.logging import get_logger
from wealthsync.ingestion.bank_source import BankItem, BankSource
from wealthsync.models.bank_connection import BankConnection
from wealthsync.schemas.holdings import Provider
from wealthsync.services.asset_service import AssetService
from wealthsync.services.filters import AdmissibilityFilter
from wealthsync.services.snapshot_service import SnapshotRecorder
from wealthsync.services.sync_service import SyncResult, SyncService

log = get_logger("bank_service")

WEBHOOK_PATH = "webhooks/bank"


class BankService:
    """Access tokens only ever reach the database encrypted."""

    def __init__(
        self,
        db: Session,
        settings: Settings,
        source: Optional[BankSource] = None,
        cipher: Optional[TokenCipher] = None,
    ):
        self.db = db
        self.settings = settings
        self._source = source
        self._cipher = cipher
        self.assets = AssetService(db)
        self.snapshots = SnapshotRecorder(db)

    @property
    def source(self) -> BankSource:
        if self._source is None:
            self._source = BankSource(self.settings)
        return self._source

    @property
    def cipher(self) -> TokenCipher:
        if self._cipher is None:
            self._cipher = TokenCipher(self.settings.ENCRYPTION_KEY)
        return self._cipher

    # -------------------------------------------------------------------------
    # Connections
    # -------------------------------------------------------------------------
    def _connection(self, item_id: str, user_id: Optional[str] = None) -> BankConnection:
        if not item_id:
            raise InvalidRequestError("itemId is required", field="itemId")
        stmt = select(BankConnection).where(BankConnection.item_id == item_id)
        if user_id is not None:
            stmt = stmt.where(BankConnection.user_id == user_id)
        connection = self.db.execute(stmt).scalar_one_or_none()
        if connection is None:
            raise NotFoundError("Bank connection not found")
        return connection

    def _item(self, connection: BankConnection) -> BankItem:
        token = self.cipher.decrypt(connection.access_token, connection.iv)
        return BankItem(item_id=connection.item_id, access_token=token)

    def _store(self, user_id: str, item: BankItem, institution_name: Optional[str]) -> BankConnection:
        ciphertext, iv = self.cipher.encrypt(item.access_token)
        connection = self.db.execute(
            select(BankConnection).where(BankConnection.item_id == item.item_id)
        ).scalar_one_or_none()
        if connection is None:
            connection = BankConnection(item_id=item.item_id, user_id=user_id)
            self.db.add(connection)
        connection.user_id = user_id
        connection.access_token = ciphertext
        connection.iv = iv
        connection.institution_name = institution_name or connection.institution_name or "Bank"
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError(f"Failed to store bank connection {item.item_id}: {exc}") from exc
        return connection

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------
    async def create_link_token(self, user_id: str) -> Dict[str, Any]:
        webhook = self.settings.webhook_url(WEBHOOK_PATH) if self.settings.PUBLIC_BASE_URL else None
        return await self.source.create_link_token(user_id, webhook)

    async def exchange(self, user_id: str, public_token: str, institution_name: Optional[str] = None) -> Dict[str, Any]:
        if not public_token:
            raise InvalidRequestError("publicToken is required", field="publicToken")
        # Fail on a bad key before the one-time public token is spent
        self.cipher
        item = await self.source.exchange_public_token(public_token)
        self._store(user_id, item, institution_name)
        log.info(f"Linked bank item {item.item_id} for user {user_id}")

        result = await self._sync(user_id, item, action="exchange")
        result.raise_for_fetch()
        return {**result.as_response(), "itemId": item.item_id}

    async def sync_item(self, item_id: str, user_id: Optional[str] = None) -> SyncResult:
        connection = self._connection(item_id, user_id)
        return await self._sync(connection.user_id, self._item(connection), action="sync")

    async def _sync(self, user_id: str, item: BankItem, action: str) -> SyncResult:
        service = SyncService(self.db, AdmissibilityFilter.from_thresholds(self.settings.admissibility_thresholds()))
        return await service.sync(user_id, self.source, [item], action=action)

    async def remove_item(self, user_id: str, item_id: str) -> Dict[str, Any]:
        """Disconnect: revoke upstream, delete the credential, retire the accounts."""
        connection = self._connection(item_id, user_id)
        try:
            await self.source.remove_item(self._item(connection))
        except UpstreamProviderError as exc:
            # Local disconnect still goes ahead
            log.warning(f"Upstream removal of item {item_id} failed: {exc}")

        try:
            self.db.delete(connection)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError(f"Failed to delete bank connection {item_id}: {exc}") from exc

        removed = self.assets.remove_by_prefix(user_id, f"plaid:{item_id}:", provider=Provider.BANK.value)
        self.snapshots.record_quietly(user_id)
        return {"success": True, "itemId": item_id, "removed": removed}

    async def account_details(self, user_id: str, item_id: str, account_id: str) -> Dict[str, Any]:
        if not account_id:
            raise InvalidRequestError("accountId is required", field="accountId")
        connection = self._connection(item_id, user_id)
        details = await self.source.account_details(self._item(connection), account_id)
        return {**details, "institutionName": connection.institution_name}
