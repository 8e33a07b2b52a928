from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Request bodies use camelCase; snake_case is accepted too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -----------------------------------------------------------------------------
# Wallets
# -----------------------------------------------------------------------------


class WalletSetup(CamelModel):
    action: Literal["setup"]


class WalletAddAddress(CamelModel):
    action: Literal["add_address"]
    user_id: str
    address: str


class WalletRemoveAddress(CamelModel):
    action: Literal["remove_address"]
    user_id: str
    address: str


class WalletCleanupUser(CamelModel):
    action: Literal["cleanup_user"]
    user_id: str


class WalletSync(CamelModel):
    action: Literal["sync"]
    user_id: str
    addresses: Optional[List[str]] = None


WalletRequest = Annotated[
    Union[WalletSetup, WalletAddAddress, WalletRemoveAddress, WalletCleanupUser, WalletSync],
    Field(discriminator="action"),
]


# -----------------------------------------------------------------------------
# Stocks
# -----------------------------------------------------------------------------


class StockSearch(CamelModel):
    action: Literal["search"]
    query: str


class StockQuotes(CamelModel):
    action: Literal["get_quotes"]
    symbols: Union[str, List[str]]


class StockProfile(CamelModel):
    action: Literal["get_profile"]
    symbol: str


class StockHistory(CamelModel):
    action: Literal["get_history"]
    symbol: str


class StockAdd(CamelModel):
    action: Literal["add_asset"]
    user_id: str
    symbol: str
    quantity: float = Field(gt=0)


class StockUpdatePrices(CamelModel):
    action: Literal["update_prices"]
    user_id: str


class StockRemove(CamelModel):
    action: Literal["remove_asset"]
    user_id: str
    asset_id: str


StockRequest = Annotated[
    Union[StockSearch, StockQuotes, StockProfile, StockHistory, StockAdd, StockUpdatePrices, StockRemove],
    Field(discriminator="action"),
]


# -----------------------------------------------------------------------------
# Bank
# -----------------------------------------------------------------------------


class BankLinkToken(CamelModel):
    action: Literal["create_link_token"]
    user_id: str


class BankExchange(CamelModel):
    action: Literal["exchange"]
    user_id: str
    public_token: str
    institution_name: Optional[str] = None


class BankSync(CamelModel):
    action: Literal["sync"]
    item_id: str
    user_id: Optional[str] = None


class BankRemoveItem(CamelModel):
    action: Literal["remove_item"]
    user_id: str
    item_id: str


BankRequest = Annotated[
    Union[BankLinkToken, BankExchange, BankSync, BankRemoveItem],
    Field(discriminator="action"),
]


# -----------------------------------------------------------------------------
# Manual assets
# -----------------------------------------------------------------------------


class ManualAdd(CamelModel):
    action: Literal["add"]
    user_id: str
    name: str
    category: str = "other"
    value: float
    quantity: Optional[float] = Field(default=None, gt=0)
    currency: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class ManualUpdate(CamelModel):
    action: Literal["update"]
    user_id: str
    asset_id: str
    name: Optional[str] = None
    category: Optional[str] = None
    value: Optional[float] = None
    quantity: Optional[float] = Field(default=None, gt=0)
    currency: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class ManualRemove(CamelModel):
    action: Literal["remove"]
    user_id: str
    asset_id: str


ManualRequest = Annotated[Union[ManualAdd, ManualUpdate, ManualRemove], Field(discriminator="action")]


# -----------------------------------------------------------------------------
# Views
# -----------------------------------------------------------------------------


class NetworthRequest(CamelModel):
    user_id: str
    force_refresh: bool = False


class PriceRefreshRequest(CamelModel):
    user_id: str


class WalletDetailsRequest(CamelModel):
    address: str
    chain: str = "eth"


class StockDetailsRequest(CamelModel):
    user_id: str
    symbol: str


class BankDetailsRequest(CamelModel):
    user_id: str
    item_id: str
    account_id: str


class ManualDetailsRequest(CamelModel):
    user_id: str
    asset_id: str


# -----------------------------------------------------------------------------
# Responses
# -----------------------------------------------------------------------------


class FailureOut(BaseModel):
    identity: str
    stage: Literal["fetch", "persist"]
    error: str


class BatchResult(BaseModel):
    success: bool
    succeeded: List[str]
    failed: List[FailureOut]
    rejected: int = 0


class HealthResponse(BaseModel):
    database: str
    last_sync_status: str | None = None
    last_sync_provider: str | None = None
    last_sync_at: datetime | None = None
    providers: Dict[str, bool] = Field(default_factory=dict)


class StatsResponse(BaseModel):
    run_id: str
    user_id: str | None
    provider: str
    action: str
    status: str
    succeeded: int
    failed: int
    error_message: str | None = None
    started_at: datetime
    ended_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class SnapshotOut(BaseModel):
    total_usd: float
    asset_count: int
    recorded_at: datetime

    model_config = ConfigDict(from_attributes=True)
