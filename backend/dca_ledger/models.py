"""Domain models used by the ledger replay and DCA allocation engines."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .errors import UnsupportedTransactionType
from .money import ZERO, quantize_qty, quantize_usd


class TransactionType(str, enum.Enum):
    BUY = "BUY"
    SELL = "SELL"
    DEPOSIT = "DEPOSIT"
    WITHDRAW = "WITHDRAW"
    SWAP = "SWAP"
    FEE = "FEE"


class LegKind(str, enum.Enum):
    BASE = "BASE"
    QUOTE = "QUOTE"
    FEE = "FEE"


class ZoneStatus(str, enum.Enum):
    ATIVA = "ATIVA"
    PULADA = "PULADA"
    EXECUTADA = "EXECUTADA"


class AnomalyKind(str, enum.Enum):
    MISSING_QUANTITY = "MISSING_QUANTITY"
    MISSING_ASSET = "MISSING_ASSET"
    NEGATIVE_BALANCE = "NEGATIVE_BALANCE"
    UNPRICED_ACQUISITION = "UNPRICED_ACQUISITION"
    NEGATIVE_QUANTITY = "NEGATIVE_QUANTITY"


@dataclass(frozen=True)
class Asset:
    id: str
    symbol: str


@dataclass(frozen=True)
class Transaction:
    """A single immutable ledger entry.

    Amounts are exact decimals. ``sequence`` breaks ties between entries that
    share a ``timestamp`` so replay order is reproducible.
    """

    id: str
    type: TransactionType | str
    timestamp: datetime
    base_asset_id: Optional[str] = None
    base_qty: Optional[Decimal] = None
    quote_asset_id: Optional[str] = None
    quote_qty: Optional[Decimal] = None
    fee_asset_id: Optional[str] = None
    fee_qty: Optional[Decimal] = None
    unit_price_usd: Optional[Decimal] = None
    value_usd: Optional[Decimal] = None
    cost_basis_usd: Optional[Decimal] = None
    sequence: int = 0
    portfolio_id: Optional[str] = None

    def normalized_type(self) -> TransactionType:
        """Return the transaction type as an enum member."""

        if isinstance(self.type, TransactionType):
            return self.type
        try:
            return TransactionType(str(self.type).strip().upper())
        except ValueError as exc:
            raise UnsupportedTransactionType(self.type) from exc

    @property
    def replay_key(self) -> tuple[datetime, int]:
        return (self.timestamp, self.sequence)


@dataclass(frozen=True)
class LegEffect:
    """Signed quantity change one transaction applies to one asset."""

    asset_id: str
    delta: Decimal
    kind: LegKind


@dataclass(frozen=True)
class LedgerAnomaly:
    kind: AnomalyKind
    transaction_id: str
    asset_id: Optional[str]
    message: str


@dataclass(frozen=True)
class Position:
    """Derived holding for one asset at full internal precision."""

    asset_id: str
    qty: Decimal
    cost_usd_total: Decimal
    avg_cost_usd: Decimal
    negative_balance: bool = False

    def quantized(self) -> "Position":
        """Round for presentation: 8 dp quantities and average, 2 dp cost."""

        return Position(
            asset_id=self.asset_id,
            qty=quantize_qty(self.qty),
            cost_usd_total=quantize_usd(self.cost_usd_total),
            avg_cost_usd=quantize_qty(self.avg_cost_usd),
            negative_balance=self.negative_balance,
        )


@dataclass(frozen=True)
class DcaZoneDefinition:
    id: str
    order: int
    price_min: Decimal
    price_max: Decimal
    percentual_base: Decimal
    executed: bool = False
    label: Optional[str] = None


@dataclass(frozen=True)
class DcaZoneComputed:
    id: str
    order: int
    label: Optional[str]
    price_min: Decimal
    price_max: Decimal
    percentual_base: Decimal
    percentual_ajustado: Decimal
    valor_usd: Decimal
    status: ZoneStatus
    distancia_pct: Decimal


@dataclass(frozen=True)
class EntryPoint:
    """One limit-order target inside a zone band."""

    order: int
    target_price: Decimal
    value_usd: Decimal


@dataclass(frozen=True)
class ZonePlan:
    """Zone allocations plus the plan-level flags callers display."""

    zones: list[DcaZoneComputed]
    current_price: Decimal
    capital_total: Decimal
    allocated_usd: Decimal = ZERO
    capital_unallocated: bool = False

    @property
    def active_zones(self) -> list[DcaZoneComputed]:
        return [zone for zone in self.zones if zone.status is ZoneStatus.ATIVA]


@dataclass
class LedgerReplay:
    positions: list[Position] = field(default_factory=list)
    anomalies: list[LedgerAnomaly] = field(default_factory=list)

    def position_for(self, asset_id: str) -> Optional[Position]:
        for position in self.positions:
            if position.asset_id == asset_id:
                return position
        return None


__all__ = [
    "TransactionType",
    "LegKind",
    "ZoneStatus",
    "AnomalyKind",
    "Asset",
    "Transaction",
    "LegEffect",
    "LedgerAnomaly",
    "Position",
    "DcaZoneDefinition",
    "DcaZoneComputed",
    "EntryPoint",
    "ZonePlan",
    "LedgerReplay",
]
