"""Provider holdings and the normalized AssetRecord.

Raw provider payloads are parsed at the adapter boundary into one of the
``RawHolding`` variants; downstream code only ever sees ``AssetRecord``.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class Provider(str, Enum):
    WALLET_CHAIN = "moralis"
    MARKET_DATA = "fmp"
    BANK = "plaid"
    MANUAL = "manual"


class AssetStatus(str, Enum):
    ACTIVE = "active"
    REMOVED = "removed"


class Performance(BaseModel):
    realized_pnl_usd: float = 0.0
    realized_pnl_percent: float = 0.0


class WalletHolding(BaseModel):
    """One native balance or ERC-20 token balance of a wallet."""

    kind: Literal["wallet"] = "wallet"
    wallet_address: str
    chain: str
    token_address: Optional[str] = None  # None for the chain's native coin
    symbol: Optional[str] = None
    name: Optional[str] = None
    balance: Optional[float] = None
    usd_price: Optional[float] = None
    usd_value: Optional[float] = None
    change_24h_percent: Optional[float] = None
    possible_spam: bool = False
    verified_contract: bool = False
    logo: Optional[str] = None

    @property
    def is_native(self) -> bool:
        return self.token_address is None

    @property
    def performance_key(self) -> Optional[str]:
        return self.token_address.lower() if self.token_address else None


class MarketHolding(BaseModel):
    """A stock/ETF position priced from a market-data quote."""

    kind: Literal["market"] = "market"
    symbol: str
    quantity: float
    price: Optional[float] = None
    name: Optional[str] = None
    change_percentage: Optional[float] = None
    is_etf: bool = False
    sector: Optional[str] = None
    industry: Optional[str] = None
    country: Optional[str] = None
    image: Optional[str] = None


class BankHolding(BaseModel):
    """One bank account balance."""

    kind: Literal["bank"] = "bank"
    item_id: str
    account_id: str
    name: Optional[str] = None
    account_type: Optional[str] = None
    account_subtype: Optional[str] = None
    current_balance: Optional[float] = None
    iso_currency_code: Optional[str] = None
    mask: Optional[str] = None


class ManualHolding(BaseModel):
    """A user-entered asset or liability (real estate, collectible, loan...)."""

    kind: Literal["manual"] = "manual"
    manual_id: str
    name: str
    category: str
    value: Optional[float] = None
    quantity: Optional[float] = None
    currency: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


RawHolding = Annotated[
    Union[WalletHolding, MarketHolding, BankHolding, ManualHolding],
    Field(discriminator="kind"),
]


class AssetRecord(BaseModel):
    """Normalized holding as persisted in the ``assets`` table.

    ``spam``, ``verified``, ``native`` and ``value_supplied`` are transient: the
    admissibility filter and the value invariant read them, persistence does not.
    """

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    asset_address_or_id: str
    provider: Provider
    type: str
    symbol: Optional[str] = None
    name: str
    icon_url: Optional[str] = None
    quantity: float = 0.0
    price_usd: float = 0.0
    balance_usd: float = 0.0
    change_24h: float = 0.0
    realized_pnl_usd: float = 0.0
    realized_pnl_percent: float = 0.0
    country: Optional[str] = None
    sector: Optional[str] = None
    industry: Optional[str] = None
    sparkline: Optional[List[float]] = None
    details: Optional[Dict[str, Any]] = None
    last_sync: Optional[datetime] = None
    status: AssetStatus = AssetStatus.ACTIVE

    spam: bool = Field(default=False, exclude=True)
    verified: bool = Field(default=True, exclude=True)
    native: bool = Field(default=False, exclude=True)
    value_supplied: bool = Field(default=False, exclude=True)

    @property
    def value(self) -> float:
        return self.balance_usd

    def to_row(self) -> Dict[str, Any]:
        row = self.model_dump(mode="python")
        row["provider"] = self.provider.value
        row["status"] = self.status.value
        return row
