"""Pydantic schemas for assets, portfolios and ledger transactions."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from dca_ledger.models import TransactionType

NonNegativeAmount = Annotated[Decimal, Field(ge=0)]


def assume_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC so replay never compares naive and aware values."""

    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class AssetCreateRequest(BaseModel):
    symbol: str = Field(..., min_length=1, max_length=20, examples=["BTC"])
    name: str | None = Field(default=None, max_length=128, examples=["Bitcoin"])


class AssetSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    symbol: str
    name: str | None = None


class PortfolioCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=64, examples=["Long term"])


class PortfolioSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    created_at: datetime


class TransactionCreateRequest(BaseModel):
    """A new ledger entry. Amounts are exact decimals; send them as strings."""

    type: TransactionType
    timestamp: datetime
    base_asset_id: int | None = None
    base_qty: NonNegativeAmount | None = None
    quote_asset_id: int | None = None
    quote_qty: NonNegativeAmount | None = None
    fee_asset_id: int | None = None
    fee_qty: NonNegativeAmount | None = None
    unit_price_usd: NonNegativeAmount | None = None
    value_usd: NonNegativeAmount | None = None
    cost_basis_usd: NonNegativeAmount | None = None
    venue: str | None = Field(default=None, max_length=64)
    notes: str | None = Field(default=None, max_length=255)

    @field_validator("timestamp")
    @classmethod
    def _timestamp_as_utc(cls, value: datetime) -> datetime:
        return assume_utc(value)

    @model_validator(mode="after")
    def _check_required_legs(self) -> "TransactionCreateRequest":
        needs_base = self.type is not TransactionType.FEE
        needs_quote = self.type in (TransactionType.BUY, TransactionType.SELL, TransactionType.SWAP)
        if needs_base and (self.base_asset_id is None or self.base_qty is None):
            raise ValueError(f"{self.type.value} requires base_asset_id and base_qty")
        if needs_quote and (self.quote_asset_id is None or self.quote_qty is None):
            raise ValueError(f"{self.type.value} requires quote_asset_id and quote_qty")
        if self.type is TransactionType.FEE and (self.fee_asset_id is None or self.fee_qty is None):
            raise ValueError("FEE requires fee_asset_id and fee_qty")
        if (self.fee_asset_id is None) != (self.fee_qty is None):
            raise ValueError("fee_asset_id and fee_qty must be given together")
        return self


class TransactionSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sequence: int
    type: TransactionType
    timestamp: datetime
    base_asset_id: int | None = None
    base_qty: Decimal | None = None
    quote_asset_id: int | None = None
    quote_qty: Decimal | None = None
    fee_asset_id: int | None = None
    fee_qty: Decimal | None = None
    unit_price_usd: Decimal | None = None
    value_usd: Decimal | None = None
    cost_basis_usd: Decimal | None = None
    venue: str | None = None
    notes: str | None = None


class ImportErrorSchema(BaseModel):
    row: int
    message: str


class TransactionImportResponse(BaseModel):
    imported: int
    errors: list[ImportErrorSchema]


class PriceSnapshotCreateRequest(BaseModel):
    asset_id: int
    price_usd: Decimal = Field(..., ge=0)
    source: str | None = Field(default=None, max_length=32)


class PriceSnapshotSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    asset_id: int
    price_usd: Decimal
    source: str | None = None
    created_at: datetime


__all__ = [
    "AssetCreateRequest",
    "AssetSchema",
    "PortfolioCreateRequest",
    "PortfolioSchema",
    "TransactionCreateRequest",
    "TransactionSchema",
    "ImportErrorSchema",
    "TransactionImportResponse",
    "PriceSnapshotCreateRequest",
    "PriceSnapshotSchema",
]
