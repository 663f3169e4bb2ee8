"""Stored price snapshots used as the default current price."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.portfolio import Asset


class PriceSnapshot(Base):
    __tablename__ = "price_snapshot"
    __table_args__ = (
        Index("ix_price_snapshot_asset_created", "asset_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    asset_id: Mapped[int] = mapped_column(ForeignKey("asset.id", ondelete="CASCADE"))
    price_usd: Mapped[Decimal] = mapped_column(Numeric(38, 18))
    source: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    asset: Mapped[Asset] = relationship()


__all__ = ["PriceSnapshot"]
