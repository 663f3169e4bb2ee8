"""Pydantic schema exports."""

from .portfolio import (
    AssetCreateRequest,
    AssetSchema,
    ImportErrorSchema,
    PortfolioCreateRequest,
    PortfolioSchema,
    PriceSnapshotCreateRequest,
    PriceSnapshotSchema,
    TransactionCreateRequest,
    TransactionImportResponse,
    TransactionSchema,
)
from .positions import (
    AggregatePositionsResponse,
    AnomalySchema,
    BalanceResponse,
    CapitalResponse,
    ComputePositionsRequest,
    ComputePositionsResponse,
    LedgerEntryInput,
    PositionSchema,
    PositionsResponse,
    PositionValuationSchema,
    ValuationResponse,
)
from .zones import (
    DcaZoneComputedSchema,
    DcaZoneCreateRequest,
    DcaZoneInput,
    DcaZoneSchema,
    DcaZoneUpdateRequest,
    EntryPointSchema,
    ZoneEntryPointsResponse,
    ZonePlanRequest,
    ZonePlanResponse,
)

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
