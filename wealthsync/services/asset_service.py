"""Asset repository: upsert, lookup and logical removal of holdings."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from wealthsync.core.clock import utcnow
from wealthsync.core.errors import NotFoundError, PersistenceError
from wealthsync.core.logging import get_logger
from wealthsync.models.asset import Asset
from wealthsync.schemas.holdings import AssetRecord, AssetStatus

log = get_logger("asset_service")

# Columns never overwritten by a conflicting upsert
_IMMUTABLE = {"id", "user_id", "asset_address_or_id", "created_at"}
# Optional enrichment a refresh may not carry; an incoming NULL keeps the stored value
_KEEP_WHEN_NULL = {"icon_url", "country", "sector", "industry", "sparkline", "details"}


@dataclass
class UpsertResult:
    succeeded: List[str] = field(default_factory=list)
    failed: List[Dict[str, str]] = field(default_factory=list)


class AssetService:
    """Reads and writes the ``assets`` table for one session."""

    def __init__(self, db: Session):
        self.db = db

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------
    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert(Asset)
        if dialect == "sqlite":
            return sqlite_insert(Asset)
        raise PersistenceError(f"Upsert not supported on dialect {dialect}")

    def _upsert_stmt(self, record: AssetRecord):
        row = record.to_row()
        stmt = self._insert().values(**row)
        changes: Dict[str, Any] = {}
        for col in row:
            if col in _IMMUTABLE:
                continue
            if col in _KEEP_WHEN_NULL:
                changes[col] = func.coalesce(stmt.excluded[col], getattr(Asset, col))
            else:
                changes[col] = stmt.excluded[col]
        changes["updated_at"] = func.now()
        return stmt.on_conflict_do_update(
            index_elements=[Asset.asset_address_or_id, Asset.user_id],
            set_=changes,
        )

    def upsert(self, record: AssetRecord) -> None:
        """Single-record upsert; any failure fails the call."""
        try:
            self.db.execute(self._upsert_stmt(record))
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError(f"Failed to save {record.asset_address_or_id}: {exc}") from exc

    def upsert_many(self, records: Iterable[AssetRecord]) -> UpsertResult:
        """Upsert each record in its own savepoint; failures are collected, not raised."""
        result = UpsertResult()
        for record in records:
            key = record.asset_address_or_id
            try:
                with self.db.begin_nested():
                    self.db.execute(self._upsert_stmt(record))
            except SQLAlchemyError as exc:
                log.error(f"Upsert failed for {record.user_id}/{key}: {exc}")
                result.failed.append({"identity": key, "stage": "persist", "error": str(exc)})
                continue
            result.succeeded.append(key)
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError(f"Commit failed: {exc}") from exc
        return result

    def _set_status(self, *conditions) -> int:
        stmt = (
            update(Asset)
            .where(*conditions, Asset.status == AssetStatus.ACTIVE.value)
            .values(status=AssetStatus.REMOVED.value, updated_at=utcnow())
        )
        try:
            count = self.db.execute(stmt).rowcount
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError(f"Failed to remove assets: {exc}") from exc
        return count or 0

    def remove(self, user_id: str, asset_id: str) -> Asset:
        asset = self.get(user_id, asset_id)
        self._set_status(Asset.id == asset.id)
        self.db.refresh(asset)
        return asset

    def remove_key(self, user_id: str, key: str) -> int:
        return self._set_status(Asset.user_id == user_id, Asset.asset_address_or_id == key)

    def remove_by_prefix(self, user_id: Optional[str], prefix: str, provider: Optional[str] = None) -> int:
        conditions = [Asset.asset_address_or_id.startswith(prefix, autoescape=True)]
        if user_id is not None:
            conditions.append(Asset.user_id == user_id)
        if provider:
            conditions.append(Asset.provider == provider)
        return self._set_status(*conditions)

    def remove_all(self, user_id: str, provider: str) -> int:
        return self._set_status(Asset.user_id == user_id, Asset.provider == provider)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------
    def get(self, user_id: str, asset_id: str) -> Asset:
        asset = self.db.execute(
            select(Asset).where(Asset.id == asset_id, Asset.user_id == user_id)
        ).scalar_one_or_none()
        if asset is None:
            raise NotFoundError("Asset not found or does not belong to user")
        return asset

    def get_by_key(self, user_id: str, key: str) -> Optional[Asset]:
        return self.db.execute(
            select(Asset).where(Asset.user_id == user_id, Asset.asset_address_or_id == key)
        ).scalar_one_or_none()

    def list_active(self, user_id: str, provider: Optional[str] = None) -> List[Asset]:
        stmt = select(Asset).where(Asset.user_id == user_id, Asset.status == AssetStatus.ACTIVE.value)
        if provider:
            stmt = stmt.where(Asset.provider == provider)
        stmt = stmt.order_by(Asset.balance_usd.desc())
        return list(self.db.execute(stmt).scalars().all())

    def active_records(self, user_id: str) -> List[AssetRecord]:
        return [AssetRecord.model_validate(asset) for asset in self.list_active(user_id)]

    def wallet_addresses(self, user_id: str) -> List[str]:
        """Distinct wallet addresses behind a user's active wallet-chain assets."""
        assets = self.list_active(user_id, provider="moralis")
        return sorted({asset.asset_address_or_id.split(":", 1)[0] for asset in assets})

    def owners_of_wallet(self, address: str) -> List[str]:
        stmt = (
            select(Asset.user_id)
            .where(
                Asset.provider == "moralis",
                Asset.status == AssetStatus.ACTIVE.value,
                Asset.asset_address_or_id.startswith(f"{address.lower()}:", autoescape=True),
            )
            .distinct()
        )
        return sorted(self.db.execute(stmt).scalars().all())

    def users_with_assets(self) -> List[str]:
        stmt = select(Asset.user_id).where(Asset.status == AssetStatus.ACTIVE.value).distinct()
        return sorted(self.db.execute(stmt).scalars().all())

    def count_active(self) -> int:
        stmt = select(func.count()).select_from(Asset).where(Asset.status == AssetStatus.ACTIVE.value)
        return self.db.execute(stmt).scalar() or 0
