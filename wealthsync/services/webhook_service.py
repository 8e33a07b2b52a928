"""Provider push handling: verify the raw body, then re-sync what changed."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Set

from sqlalchemy.orm import Session

from wealthsync.core.config import Settings
from wealthsync.core.errors import InvalidRequestError, NotFoundError, WealthSyncError
from wealthsync.core.logging import get_logger
from wealthsync.core.signatures import WebhookVerifier
from wealthsync.ingestion.bank_source import BankSource
from wealthsync.ingestion.wallet_source import WalletChainSource
from wealthsync.services.asset_service import AssetService
from wealthsync.services.bank_service import BankService
from wealthsync.services.wallet_service import WalletService

log = get_logger("webhook_service")

# Bank webhook codes that mean balances or transactions moved
BANK_SYNC_CODES = {"DEFAULT_UPDATE", "INITIAL_UPDATE", "HISTORICAL_UPDATE", "SYNC_UPDATES_AVAILABLE"}


def _parse(body: bytes) -> Dict[str, Any]:
    try:
        payload = json.loads(body)
    except ValueError as exc:
        raise InvalidRequestError(f"Webhook body is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise InvalidRequestError("Webhook body must be a JSON object")
    return payload


def _entries(payload: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    entries = payload.get(key) or []
    if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
        raise InvalidRequestError(f"Webhook field {key} must be a list of objects")
    return entries


def touched_addresses(payload: Dict[str, Any]) -> List[str]:
    """Every address a stream event mentions, lower-cased."""
    found: Set[str] = set()
    for balance in _entries(payload, "nativeBalances"):
        if isinstance(balance.get("address"), str) and balance["address"]:
            found.add(balance["address"].lower())
    for entry in _entries(payload, "txs") + _entries(payload, "erc20Transfers"):
        for side in ("from", "to", "fromAddress", "toAddress"):
            if isinstance(entry.get(side), str) and entry[side]:
                found.add(entry[side].lower())
    return sorted(found)


class WebhookService:
    """Signatures are always checked, including on provider test pings."""

    def __init__(
        self,
        db: Session,
        settings: Settings,
        wallet_source: Optional[WalletChainSource] = None,
        bank_source: Optional[BankSource] = None,
    ):
        self.db = db
        self.settings = settings
        self.wallet_source = wallet_source
        self.bank_source = bank_source
        self.assets = AssetService(db)

    async def handle_wallet(self, body: bytes, signature: Optional[str]) -> Dict[str, Any]:
        WebhookVerifier("moralis", self.settings.MORALIS_WEBHOOK_SECRET, self.settings.WALLET_WEBHOOK_SCHEME).verify(
            body, signature
        )
        payload = _parse(body)

        if payload.get("test") or not payload.get("streamId"):
            log.info("Wallet stream test webhook received")
            return {"success": True, "message": "Test webhook received"}
        if not payload.get("confirmed"):
            return {"success": True, "message": "Unconfirmed transaction"}

        # Group touched addresses by the users tracking them
        by_user: Dict[str, List[str]] = {}
        for address in touched_addresses(payload):
            for user_id in self.assets.owners_of_wallet(address):
                by_user.setdefault(user_id, []).append(address)

        wallets = WalletService(self.db, self.settings, self.wallet_source)
        results: Dict[str, Any] = {}
        for user_id, addresses in sorted(by_user.items()):
            try:
                results[user_id] = (await wallets.sync_user_wallets(user_id, addresses)).as_response()
            except WealthSyncError as exc:
                log.error(f"Webhook re-sync failed for {user_id}: {exc}")
                results[user_id] = {"success": False, "error": exc.title, "message": exc.message}

        log.info(f"Wallet webhook processed for {len(by_user)} users")
        return {
            "success": all(r["success"] for r in results.values()),
            "message": f"Processed {sum(len(a) for a in by_user.values())} wallets",
            "users": results,
        }

    async def handle_bank(self, body: bytes, signature: Optional[str]) -> Dict[str, Any]:
        WebhookVerifier("plaid", self.settings.PLAID_WEBHOOK_SECRET, self.settings.BANK_WEBHOOK_SCHEME).verify(
            body, signature
        )
        payload = _parse(body)
        webhook_type = payload.get("webhook_type")
        code = payload.get("webhook_code")
        item_id = payload.get("item_id")
        log.info(f"Bank webhook {webhook_type}/{code} for item {item_id}")

        response: Dict[str, Any] = {"webhook_received": True}
        if code not in BANK_SYNC_CODES or not item_id:
            return response

        try:
            result = await BankService(self.db, self.settings, self.bank_source).sync_item(item_id)
        except NotFoundError:
            log.warning(f"Bank webhook for unknown item {item_id}")
            return response
        response["sync"] = result.as_response()
        return response
