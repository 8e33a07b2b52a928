"""Normalization of provider holdings into AssetRecords.

Value precedence:
- wallet, bank and manual holdings carry a source-supplied USD value; it wins,
  and a missing unit price is derived from it
- market positions are always valued as ``price * quantity``
- a missing value and a missing price both default to 0
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from functools import singledispatch
from typing import Dict, Optional

from wealthsync.core.clock import utcnow
from wealthsync.schemas.holdings import (
    AssetRecord,
    BankHolding,
    ManualHolding,
    MarketHolding,
    Performance,
    Provider,
    WalletHolding,
)

OTHER = "other"

# Plaid (type, subtype) -> asset type
BANK_TYPES: Dict[str, str] = {
    "depository": "cash",
    "investment": "stock",
    "credit": "credit",
    "loan": "loan",
}
BANK_SUBTYPES: Dict[tuple, str] = {
    ("investment", "ira"): "retirement",
    ("investment", "401k"): "retirement",
    ("loan", "mortgage"): "mortgage",
}

MANUAL_CATEGORIES = {"real_estate", "investment", "commodity", "collectible", "liability", "cash"}

LIABILITY_TYPES = {"credit", "loan", "mortgage", "liability"}


@dataclass
class NormalizeContext:
    user_id: str
    now: datetime = field(default_factory=utcnow)
    performance: Dict[str, Performance] = field(default_factory=dict)


def bank_type(account_type: Optional[str], subtype: Optional[str]) -> str:
    key = ((account_type or "").lower(), (subtype or "").lower())
    return BANK_SUBTYPES.get(key) or BANK_TYPES.get(key[0], OTHER)


def manual_type(category: Optional[str]) -> str:
    category = (category or "").lower()
    return category if category in MANUAL_CATEGORIES else OTHER


def signed_value(asset_type: str, value: float) -> float:
    """Liabilities are stored negative, everything else non-negative."""
    return -abs(value) if asset_type in LIABILITY_TYPES else value


def _num(value: Optional[float]) -> float:
    return value if value is not None else 0.0


@singledispatch
def normalize(raw, context: NormalizeContext) -> AssetRecord:
    raise TypeError(f"Unsupported holding type: {type(raw).__name__}")


@normalize.register
def _(raw: WalletHolding, context: NormalizeContext) -> AssetRecord:
    quantity = _num(raw.balance)
    supplied = raw.usd_value is not None
    if supplied:
        value = raw.usd_value
        price = raw.usd_price if raw.usd_price is not None else (value / quantity if quantity else 0.0)
    else:
        price = _num(raw.usd_price)
        value = price * quantity

    if raw.is_native:
        key = f"{raw.wallet_address}:native:{raw.chain}"
    else:
        key = f"{raw.wallet_address}:{raw.token_address}"

    perf = context.performance.get(raw.performance_key or "") or Performance()
    symbol = raw.symbol or "UNKNOWN"
    return AssetRecord(
        user_id=context.user_id,
        asset_address_or_id=key,
        provider=Provider.WALLET_CHAIN,
        type="crypto",
        symbol=symbol,
        name=raw.name or symbol,
        icon_url=raw.logo,
        quantity=quantity,
        price_usd=price,
        balance_usd=value,
        change_24h=_num(raw.change_24h_percent),
        realized_pnl_usd=perf.realized_pnl_usd,
        realized_pnl_percent=perf.realized_pnl_percent,
        last_sync=context.now,
        spam=raw.possible_spam,
        verified=raw.verified_contract or raw.is_native,
        native=raw.is_native,
        value_supplied=supplied,
    )


@normalize.register
def _(raw: MarketHolding, context: NormalizeContext) -> AssetRecord:
    symbol = raw.symbol.upper()
    price = _num(raw.price)
    return AssetRecord(
        user_id=context.user_id,
        asset_address_or_id=f"fmp:{symbol}",
        provider=Provider.MARKET_DATA,
        type="etf" if raw.is_etf else "stock",
        symbol=symbol,
        name=raw.name or symbol,
        icon_url=raw.image,
        quantity=raw.quantity,
        price_usd=price,
        balance_usd=price * raw.quantity,
        change_24h=_num(raw.change_percentage),
        country=raw.country,
        sector=raw.sector,
        industry=raw.industry,
        last_sync=context.now,
    )


@normalize.register
def _(raw: BankHolding, context: NormalizeContext) -> AssetRecord:
    asset_type = bank_type(raw.account_type, raw.account_subtype)
    value = signed_value(asset_type, _num(raw.current_balance))
    name = raw.name or "Account"
    if raw.mask:
        name = f"{name} ****{raw.mask}"
    return AssetRecord(
        user_id=context.user_id,
        asset_address_or_id=f"plaid:{raw.item_id}:{raw.account_id}",
        provider=Provider.BANK,
        type=asset_type,
        symbol=raw.iso_currency_code or "USD",
        name=name,
        quantity=1.0,
        price_usd=abs(value),
        balance_usd=value,
        last_sync=context.now,
        value_supplied=True,
    )


@normalize.register
def _(raw: ManualHolding, context: NormalizeContext) -> AssetRecord:
    asset_type = manual_type(raw.category)
    value = signed_value(asset_type, _num(raw.value))
    quantity = raw.quantity if raw.quantity else 1.0
    return AssetRecord(
        user_id=context.user_id,
        asset_address_or_id=f"manual:{raw.manual_id}",
        provider=Provider.MANUAL,
        type=asset_type,
        symbol=raw.currency or "USD",
        name=raw.name,
        quantity=quantity,
        price_usd=abs(value) / quantity,
        balance_usd=value,
        details=raw.details,
        last_sync=context.now,
        value_supplied=True,
    )
