"""Ledger replay, weighted-average cost and adaptive DCA zone allocation."""

from .capital import DEFAULT_STABLECOIN_SYMBOLS, stablecoin_capital
from .cost_basis import compute_positions, merge_positions
from .errors import (
    InvalidAmount,
    LedgerError,
    LedgerOrderError,
    UnsupportedTransactionType,
    ZoneDefinitionError,
)
from .models import (
    AnomalyKind,
    Asset,
    DcaZoneComputed,
    DcaZoneDefinition,
    EntryPoint,
    LedgerAnomaly,
    LedgerReplay,
    Position,
    Transaction,
    TransactionType,
    ZonePlan,
    ZoneStatus,
)
from .replay import compute_balance, compute_balances, order_ledger
from .valuation import PortfolioValuation, value_positions
from .zones import build_zone_plan, compute_adaptive_zones, zone_entry_points

__all__ = [
    "AnomalyKind",
    "Asset",
    "DcaZoneComputed",
    "DcaZoneDefinition",
    "EntryPoint",
    "LedgerAnomaly",
    "LedgerReplay",
    "Position",
    "Transaction",
    "TransactionType",
    "ZonePlan",
    "ZoneStatus",
    "LedgerError",
    "InvalidAmount",
    "LedgerOrderError",
    "UnsupportedTransactionType",
    "ZoneDefinitionError",
    "compute_balance",
    "compute_balances",
    "order_ledger",
    "compute_positions",
    "merge_positions",
    "stablecoin_capital",
    "DEFAULT_STABLECOIN_SYMBOLS",
    "compute_adaptive_zones",
    "build_zone_plan",
    "zone_entry_points",
    "value_positions",
    "PortfolioValuation",
]
