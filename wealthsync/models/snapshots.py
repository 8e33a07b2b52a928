"""Immutable point-in-time totals used for day-over-day change."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from wealthsync.models.base import Base


class WealthSnapshot(Base):
    __tablename__ = "wealth_snapshots"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    user_id: Mapped[str] = mapped_column(String(100), nullable=False)

    total_usd: Mapped[float] = mapped_column(Numeric(28, 10, asdecimal=False), nullable=False)
    asset_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (Index("ix_wealth_snapshots_user_recorded", "user_id", "recorded_at"),)
