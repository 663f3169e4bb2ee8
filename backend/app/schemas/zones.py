"""Schemas for DCA zone definitions and computed zone plans."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from dca_ledger.models import ZoneStatus


class DcaZoneCreateRequest(BaseModel):
    asset_id: int
    order: int = Field(default=1, ge=1)
    label: str | None = Field(default=None, max_length=50)
    price_min: Decimal = Field(..., ge=0)
    price_max: Decimal = Field(..., ge=0)
    percentual_base: Decimal = Field(..., ge=0, le=100)


class DcaZoneUpdateRequest(BaseModel):
    order: int | None = Field(default=None, ge=1)
    label: str | None = Field(default=None, max_length=50)
    price_min: Decimal | None = Field(default=None, ge=0)
    price_max: Decimal | None = Field(default=None, ge=0)
    percentual_base: Decimal | None = Field(default=None, ge=0, le=100)
    executed: bool | None = None


class DcaZoneSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    asset_id: int
    order: int
    label: str | None = None
    price_min: Decimal
    price_max: Decimal
    percentual_base: Decimal
    executed: bool


class DcaZoneInput(BaseModel):
    id: str
    order: int
    label: str | None = None
    price_min: Decimal
    price_max: Decimal
    percentual_base: Decimal
    executed: bool = False


class ZonePlanRequest(BaseModel):
    zones: list[DcaZoneInput]
    current_price: Decimal = Field(..., ge=0)
    capital_total: Decimal = Field(..., ge=0)


class DcaZoneComputedSchema(BaseModel):
    id: str
    order: int
    label: str | None = None
    price_min: Decimal
    price_max: Decimal
    percentual_base: Decimal
    percentual_ajustado: Decimal
    valor_usd: Decimal
    status: ZoneStatus
    distancia_pct: Decimal


class ZonePlanResponse(BaseModel):
    asset: str | None = None
    current_price: Decimal
    capital_total: Decimal
    allocated_usd: Decimal
    capital_unallocated: bool
    zones: list[DcaZoneComputedSchema]


class EntryPointSchema(BaseModel):
    order: int
    target_price: Decimal
    value_usd: Decimal


class ZoneEntryPointsResponse(BaseModel):
    zone_id: int
    asset: str
    current_price: Decimal
    zone_value_usd: Decimal
    entries: list[EntryPointSchema]


__all__ = [
    "DcaZoneCreateRequest",
    "DcaZoneUpdateRequest",
    "DcaZoneSchema",
    "DcaZoneInput",
    "ZonePlanRequest",
    "DcaZoneComputedSchema",
    "ZonePlanResponse",
    "EntryPointSchema",
    "ZoneEntryPointsResponse",
]
