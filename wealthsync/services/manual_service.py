"""User-entered assets and liabilities."""

from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from wealthsync.core.errors import InvalidRequestError, NotFoundError
from wealthsync.core.logging import get_logger
from wealthsync.models.asset import Asset
from wealthsync.schemas.holdings import AssetRecord, AssetStatus, ManualHolding, Provider
from wealthsync.services.asset_service import AssetService
from wealthsync.services.normalizer import NormalizeContext, normalize
from wealthsync.services.snapshot_service import SnapshotRecorder

log = get_logger("manual_service")

KEY_PREFIX = "manual:"


class ManualAssetService:
    def __init__(self, db: Session):
        self.db = db
        self.assets = AssetService(db)
        self.snapshots = SnapshotRecorder(db)

    def _save(self, user_id: str, holding: ManualHolding) -> Asset:
        record = normalize(holding, NormalizeContext(user_id=user_id))
        self.assets.upsert(record)
        self.snapshots.record_quietly(user_id)
        return self.assets.get_by_key(user_id, record.asset_address_or_id)

    def _manual_asset(self, user_id: str, asset_id: str) -> Asset:
        if not asset_id:
            raise InvalidRequestError("assetId is required", field="assetId")
        asset = self.assets.get(user_id, asset_id)
        if asset.provider != Provider.MANUAL.value or asset.status != AssetStatus.ACTIVE.value:
            raise NotFoundError("Manual asset not found")
        return asset

    def add(
        self,
        user_id: str,
        name: str,
        category: str,
        value: float,
        quantity: Optional[float] = None,
        currency: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        if not name or not name.strip():
            raise InvalidRequestError("name is required", field="name")
        if value is None:
            raise InvalidRequestError("value is required", field="value")
        holding = ManualHolding(
            manual_id=str(uuid.uuid4()),
            name=name.strip(),
            category=category,
            value=value,
            quantity=quantity,
            currency=currency,
            details=details,
        )
        asset = self._save(user_id, holding)
        log.info(f"Added manual asset {asset.id} ({asset.type}) for user {user_id}")
        return {"success": True, "asset": _summary(asset)}

    def update(self, user_id: str, asset_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        """Partial update; fields not given keep their stored value."""
        asset = self._manual_asset(user_id, asset_id)
        holding = ManualHolding(
            manual_id=asset.asset_address_or_id[len(KEY_PREFIX):],
            name=changes.get("name") or asset.name,
            category=changes.get("category") or asset.type,
            # stored liabilities are negative; the normalizer re-applies the sign
            value=changes["value"] if changes.get("value") is not None else abs(asset.balance_usd or 0.0),
            quantity=changes.get("quantity") or asset.quantity,
            currency=changes.get("currency") or asset.symbol,
            details=changes.get("details") if changes.get("details") is not None else asset.details,
        )
        asset = self._save(user_id, holding)
        return {"success": True, "asset": _summary(asset)}

    def remove(self, user_id: str, asset_id: str) -> Dict[str, Any]:
        asset = self._manual_asset(user_id, asset_id)
        self.assets.remove(user_id, asset.id)
        self.snapshots.record_quietly(user_id)
        return {"success": True, "message": "Asset removed successfully", "removed_asset": asset.name}

    def details(self, user_id: str, asset_id: str) -> Dict[str, Any]:
        asset = self._manual_asset(user_id, asset_id)
        return {
            "assetId": asset.id,
            "name": asset.name,
            "category": asset.type,
            "currentValue": asset.balance_usd,
            "purchasePrice": asset.price_usd,
            "purchaseDate": asset.created_at.isoformat() if asset.created_at else None,
            "currency": asset.symbol or "USD",
            "metadata": asset.details or {},
            "valueHistory": [asset.balance_usd],
        }


def _summary(asset: Asset) -> Dict[str, Any]:
    record = AssetRecord.model_validate(asset)
    fields = {"name", "type", "symbol", "quantity", "price_usd", "balance_usd", "details"}
    return {"id": asset.id, **record.model_dump(mode="json", include=fields)}
