"""Bank source (Plaid REST API)."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional

import httpx

from wealthsync.core.clock import utcnow
from wealthsync.core.config import Settings
from wealthsync.core.errors import NotFoundError, UpstreamProviderError
from wealthsync.core.logging import get_logger
from wealthsync.schemas.holdings import BankHolding
from .base import BaseSource, to_float

log = get_logger("ingestion.bank")

LINK_PRODUCTS = ["auth", "transactions", "liabilities", "investments"]
LINK_COUNTRY_CODES = ["US", "FR", "CA", "GB"]
ACCOUNT_FILTERS = {
    "depository": {"account_subtypes": ["checking", "savings"]},
    "credit": {"account_subtypes": ["credit card"]},
    "loan": {"account_subtypes": ["student", "mortgage"]},
    "investment": {"account_subtypes": ["brokerage", "ira", "401k"]},
}


@dataclass(frozen=True)
class BankItem:
    """A linked institution; the access token is plaintext only in memory."""

    item_id: str
    access_token: str = field(repr=False)

    def __str__(self) -> str:
        return self.item_id


class BankSource(BaseSource):
    """Links institutions and reads account balances and transactions."""

    name = "plaid"

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        settings.require("PLAID_CLIENT_ID", "PLAID_SECRET")
        super().__init__(timeout=settings.HTTP_TIMEOUT_SECONDS, transport=transport)
        self.client_id = settings.PLAID_CLIENT_ID
        self.secret = settings.PLAID_SECRET
        self.client_name = settings.PLAID_CLIENT_NAME
        self.base_url = settings.plaid_base_url

    async def _post(self, endpoint: str, body: Dict[str, Any]) -> Dict[str, Any]:
        payload = {"client_id": self.client_id, "secret": self.secret, **body}
        data = await self._request(
            "POST", f"{self.base_url}{endpoint}", json=payload, headers={"Content-Type": "application/json"}
        )
        if not isinstance(data, dict):
            raise UpstreamProviderError(self.name, f"unexpected payload from {endpoint}")
        return data

    # -------------------------------------------------------------------------
    # Linking
    # -------------------------------------------------------------------------
    async def create_link_token(self, user_id: str, webhook_url: Optional[str] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "client_name": self.client_name,
            "user": {"client_user_id": user_id},
            "products": LINK_PRODUCTS,
            "country_codes": LINK_COUNTRY_CODES,
            "language": "en",
            "account_filters": ACCOUNT_FILTERS,
        }
        if webhook_url:
            body["webhook"] = webhook_url
        data = await self._post("/link/token/create", body)
        return {
            "link_token": data.get("link_token"),
            "expiration": data.get("expiration"),
            "request_id": data.get("request_id"),
        }

    async def exchange_public_token(self, public_token: str) -> BankItem:
        data = await self._post("/item/public_token/exchange", {"public_token": public_token})
        if not data.get("access_token") or not data.get("item_id"):
            raise UpstreamProviderError(self.name, "token exchange returned no access token")
        return BankItem(item_id=data["item_id"], access_token=data["access_token"])

    async def remove_item(self, item: BankItem) -> None:
        await self._post("/item/remove", {"access_token": item.access_token})

    # -------------------------------------------------------------------------
    # Balances
    # -------------------------------------------------------------------------
    def identity_label(self, identity: BankItem) -> str:
        return identity.item_id

    async def fetch_balances(self, identity: BankItem) -> List[BankHolding]:
        data = await self._post("/accounts/balance/get", {"access_token": identity.access_token})
        holdings = [self._parse_account(identity.item_id, acc) for acc in data.get("accounts") or []]
        log.info(f"Fetched {len(holdings)} accounts for item {identity.item_id}")
        return holdings

    @staticmethod
    def _parse_account(item_id: str, account: Dict[str, Any]) -> BankHolding:
        balances = account.get("balances") or {}
        return BankHolding(
            item_id=item_id,
            account_id=account["account_id"],
            name=account.get("official_name") or account.get("name"),
            account_type=account.get("type"),
            account_subtype=account.get("subtype"),
            current_balance=to_float(balances.get("current")),
            iso_currency_code=balances.get("iso_currency_code"),
            mask=account.get("mask"),
        )

    # -------------------------------------------------------------------------
    # Account details
    # -------------------------------------------------------------------------
    async def account_details(self, item: BankItem, account_id: str, days: int = 30) -> Dict[str, Any]:
        today = utcnow().date()
        balance, transactions = await asyncio.gather(
            self._post(
                "/accounts/balance/get",
                {"access_token": item.access_token, "options": {"account_ids": [account_id]}},
            ),
            self._post(
                "/transactions/get",
                {
                    "access_token": item.access_token,
                    "start_date": (today - timedelta(days=days)).isoformat(),
                    "end_date": today.isoformat(),
                    "options": {"account_ids": [account_id], "count": 15},
                },
            ),
        )

        accounts = balance.get("accounts") or []
        if not accounts:
            raise NotFoundError(f"Account {account_id} not found for item {item.item_id}")
        account = accounts[0]
        balances = account.get("balances") or {}
        current = to_float(balances.get("current"), 0.0)
        txs = transactions.get("transactions") or []

        return {
            "accountId": account.get("account_id"),
            "name": account.get("name"),
            "accountMask": f"**** {account.get('mask') or '0000'}",
            "accountType": account.get("type"),
            "accountSubtype": account.get("subtype"),
            "currentBalance": current,
            "availableBalance": to_float(balances.get("available"), current),
            "creditLimit": to_float(balances.get("limit")),
            "currency": balances.get("iso_currency_code") or "USD",
            "transactions": [
                {
                    "transactionId": t.get("transaction_id"),
                    "name": t.get("name"),
                    "merchantName": t.get("merchant_name"),
                    "amount": to_float(t.get("amount"), 0.0),
                    "category": (t.get("category") or ["General"])[0],
                    "date": t.get("date"),
                    "isPending": bool(t.get("pending")),
                    "logoUrl": t.get("personal_finance_category_icon_url"),
                }
                for t in txs
            ],
            "balanceHistory": balance_history(current, txs),
        }


def balance_history(current: float, transactions: List[Dict[str, Any]]) -> List[float]:
    """Walk newest-first transactions back from the current balance.

    Plaid amounts are positive for outflows, so adding each one undoes it.
    The result is oldest-first and ends with ``current``.
    """
    history = [current]
    running = current
    for tx in transactions:
        running += to_float(tx.get("amount"), 0.0)
        history.append(round(running, 2))
    return list(reversed(history))
