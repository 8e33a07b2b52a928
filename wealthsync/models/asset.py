"""Canonical table the mobile client reads: one row per holding per user."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Numeric, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from wealthsync.models.base import Base, JSONType

# Floats in Python, NUMERIC in the database
Amount = Numeric(28, 10, asdecimal=False)


class Asset(Base):
    """Persisted AssetRecord.

    ``asset_address_or_id`` encodes the provider identity:
        - "<wallet>:<token_contract>" / "<wallet>:native:<chain>" (wallet-chain)
        - "fmp:<TICKER>" (market data)
        - "plaid:<item>:<account>" (bank)
        - "manual:<uuid>" (manual entry)
    """

    __tablename__ = "assets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    user_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    asset_address_or_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    provider: Mapped[str] = mapped_column(String(20), nullable=False)
    type: Mapped[str] = mapped_column(String(30), nullable=False)

    symbol: Mapped[str | None] = mapped_column(String(40), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    icon_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    quantity: Mapped[float] = mapped_column(Amount, nullable=False, default=0.0)
    price_usd: Mapped[float] = mapped_column(Amount, nullable=False, default=0.0)
    balance_usd: Mapped[float] = mapped_column(Amount, nullable=False, default=0.0)
    change_24h: Mapped[float] = mapped_column(Amount, nullable=False, default=0.0)

    realized_pnl_usd: Mapped[float] = mapped_column(Amount, nullable=False, default=0.0)
    realized_pnl_percent: Mapped[float] = mapped_column(Amount, nullable=False, default=0.0)

    # Stocks only
    country: Mapped[str | None] = mapped_column(String(60), nullable=True)
    sector: Mapped[str | None] = mapped_column(String(100), nullable=True)
    industry: Mapped[str | None] = mapped_column(String(100), nullable=True)

    sparkline: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    details: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")  # active | removed

    last_sync: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        UniqueConstraint("asset_address_or_id", "user_id", name="uq_assets_address_user"),
    )
