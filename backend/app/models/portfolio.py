"""Asset, portfolio, ledger transaction and DCA zone models."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from dca_ledger.models import TransactionType

TRANSACTION_TYPES = tuple(t.value for t in TransactionType)

# Quantities of 18-decimal tokens must survive the round trip untouched.
Amount = Numeric(38, 18)


class Asset(Base):
    __tablename__ = "asset"

    id: Mapped[int] = mapped_column(primary_key=True)
    symbol: Mapped[str] = mapped_column(String(20), unique=True)
    name: Mapped[str | None] = mapped_column(String(128), nullable=True)


class Portfolio(Base):
    __tablename__ = "portfolio"
    __table_args__ = (
        UniqueConstraint("owner_id", "name", name="uq_portfolio_owner_name"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(64), index=True)
    name: Mapped[str] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    transactions: Mapped[list["LedgerTransaction"]] = relationship(
        back_populates="portfolio", cascade="all, delete-orphan"
    )
    zones: Mapped[list["DcaZone"]] = relationship(
        back_populates="portfolio", cascade="all, delete-orphan"
    )


class LedgerTransaction(Base):
    __tablename__ = "ledger_transaction"
    __table_args__ = (
        UniqueConstraint("portfolio_id", "sequence", name="uq_ledger_transaction_sequence"),
        Index("ix_ledger_transaction_replay", "portfolio_id", "timestamp", "sequence"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    portfolio_id: Mapped[int] = mapped_column(ForeignKey("portfolio.id", ondelete="CASCADE"))
    sequence: Mapped[int] = mapped_column(BigInteger)
    type: Mapped[str] = mapped_column(Enum(*TRANSACTION_TYPES, name="ledger_transaction_type"))
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    base_asset_id: Mapped[int | None] = mapped_column(ForeignKey("asset.id"), nullable=True)
    base_qty: Mapped[Decimal | None] = mapped_column(Amount, nullable=True)
    quote_asset_id: Mapped[int | None] = mapped_column(ForeignKey("asset.id"), nullable=True)
    quote_qty: Mapped[Decimal | None] = mapped_column(Amount, nullable=True)
    fee_asset_id: Mapped[int | None] = mapped_column(ForeignKey("asset.id"), nullable=True)
    fee_qty: Mapped[Decimal | None] = mapped_column(Amount, nullable=True)

    unit_price_usd: Mapped[Decimal | None] = mapped_column(Amount, nullable=True)
    value_usd: Mapped[Decimal | None] = mapped_column(Amount, nullable=True)
    cost_basis_usd: Mapped[Decimal | None] = mapped_column(Amount, nullable=True)

    venue: Mapped[str | None] = mapped_column(String(64), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    portfolio: Mapped[Portfolio] = relationship(back_populates="transactions")
    base_asset: Mapped[Optional[Asset]] = relationship(foreign_keys=[base_asset_id])
    quote_asset: Mapped[Optional[Asset]] = relationship(foreign_keys=[quote_asset_id])
    fee_asset: Mapped[Optional[Asset]] = relationship(foreign_keys=[fee_asset_id])


class DcaZone(Base):
    __tablename__ = "dca_zone"
    __table_args__ = (
        UniqueConstraint("portfolio_id", "asset_id", "order", name="uq_dca_zone_order"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    portfolio_id: Mapped[int] = mapped_column(ForeignKey("portfolio.id", ondelete="CASCADE"))
    asset_id: Mapped[int] = mapped_column(ForeignKey("asset.id"))
    order: Mapped[int] = mapped_column(Integer)
    label: Mapped[str | None] = mapped_column(String(50), nullable=True)
    price_min: Mapped[Decimal] = mapped_column(Amount)
    price_max: Mapped[Decimal] = mapped_column(Amount)
    percentual_base: Mapped[Decimal] = mapped_column(Numeric(9, 4))
    executed: Mapped[bool] = mapped_column(Boolean, default=False)

    portfolio: Mapped[Portfolio] = relationship(back_populates="zones")
    asset: Mapped[Asset] = relationship()


__all__ = [
    "Asset",
    "Portfolio",
    "LedgerTransaction",
    "DcaZone",
    "TRANSACTION_TYPES",
]
