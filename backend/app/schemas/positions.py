"""Schemas for replayed positions, balances, capital and valuation."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from app.schemas.portfolio import NonNegativeAmount, assume_utc
from dca_ledger.models import AnomalyKind, TransactionType


class PositionSchema(BaseModel):
    """A WAC position rounded for display (8 dp quantities, 2 dp cost)."""

    asset_id: str
    symbol: str | None = None
    qty: Decimal
    cost_usd_total: Decimal
    avg_cost_usd: Decimal
    negative_balance: bool = False


class AnomalySchema(BaseModel):
    kind: AnomalyKind
    transaction_id: str
    asset_id: str | None = None
    message: str


class PositionsResponse(BaseModel):
    positions: list[PositionSchema]
    anomalies: list[AnomalySchema] = Field(default_factory=list)


class BalanceResponse(BaseModel):
    asset_id: str
    balance: Decimal


class CapitalResponse(BaseModel):
    capital_usd: Decimal
    stablecoin_symbols: list[str]


class PositionValuationSchema(BaseModel):
    asset_id: str
    symbol: str | None = None
    qty: Decimal
    avg_cost_usd: Decimal
    cost_usd_total: Decimal
    price_usd: Decimal
    value_usd: Decimal
    pnl_usd: Decimal
    pnl_pct: Decimal


class ValuationResponse(BaseModel):
    positions: list[PositionValuationSchema]
    value_usd: Decimal
    cost_usd: Decimal
    unrealized_pnl_usd: Decimal
    unrealized_pnl_pct: Decimal


class LedgerEntryInput(BaseModel):
    """Ledger row for stateless computation; asset ids are free-form strings."""

    id: str
    type: TransactionType
    timestamp: datetime
    sequence: int = 0
    base_asset_id: str | None = None
    base_qty: NonNegativeAmount | None = None
    quote_asset_id: str | None = None
    quote_qty: NonNegativeAmount | None = None
    fee_asset_id: str | None = None
    fee_qty: NonNegativeAmount | None = None
    unit_price_usd: NonNegativeAmount | None = None
    value_usd: NonNegativeAmount | None = None
    cost_basis_usd: NonNegativeAmount | None = None

    @field_validator("timestamp")
    @classmethod
    def _timestamp_as_utc(cls, value: datetime) -> datetime:
        return assume_utc(value)


class ComputePositionsRequest(BaseModel):
    transactions: list[LedgerEntryInput]
    symbols: dict[str, str] = Field(
        default_factory=dict, description="Optional asset id to symbol map used for capital"
    )
    sort: bool = Field(default=False, description="Sort by (timestamp, sequence) before replay")


class ComputePositionsResponse(PositionsResponse):
    capital_usd: Decimal


class AggregatePositionsResponse(PositionsResponse):
    """Positions summed per asset across every portfolio of the caller."""

    portfolio_ids: list[int]


__all__ = [
    "PositionSchema",
    "AnomalySchema",
    "PositionsResponse",
    "BalanceResponse",
    "CapitalResponse",
    "PositionValuationSchema",
    "ValuationResponse",
    "LedgerEntryInput",
    "ComputePositionsRequest",
    "ComputePositionsResponse",
    "AggregatePositionsResponse",
]
