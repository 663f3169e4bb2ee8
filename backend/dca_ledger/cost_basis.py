"""Moving weighted-average cost replay.

Positions are rebuilt from the complete ledger on every call. Acquisitions
revise the average cost; disposals remove ``qty * average`` from the cost
total and leave the average unchanged. A position that reaches zero (or goes
negative because the ledger is incomplete) carries no cost basis, and an
acquisition that refills a shortfall is charged only for the units it leaves
above zero.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Sequence

from .legs import expand_legs
from .models import (
    AnomalyKind,
    LedgerAnomaly,
    LedgerReplay,
    LegEffect,
    LegKind,
    Position,
    Transaction,
    TransactionType,
)
from .money import ZERO
from .replay import ensure_ordered

logger = logging.getLogger(__name__)


@dataclass
class _Holding:
    """Running quantity and cost for one asset during replay."""

    qty: Decimal = ZERO
    cost_total: Decimal = ZERO

    @property
    def avg_cost(self) -> Decimal:
        return self.cost_total / self.qty if self.qty > 0 else ZERO

    def acquire(self, qty: Decimal, cost: Decimal) -> None:
        if self.qty < 0:
            # Units that only refill a shortfall carry no cost.
            above_zero = max(self.qty + qty, ZERO)
            cost = cost * above_zero / qty
        self.qty += qty
        self.cost_total += cost
        self._settle()

    def dispose(self, qty: Decimal) -> Decimal:
        removed = qty * self.avg_cost
        self.qty -= qty
        self.cost_total -= removed
        self._settle()
        return removed

    def _settle(self) -> None:
        if self.qty <= 0:
            self.cost_total = ZERO


def _unpriced(tx: Transaction, leg: LegEffect, anomalies: list[LedgerAnomaly]) -> Decimal:
    anomaly = LedgerAnomaly(
        kind=AnomalyKind.UNPRICED_ACQUISITION,
        transaction_id=tx.id,
        asset_id=leg.asset_id,
        message=f"{tx.normalized_type().value} acquisition has no USD value; added at zero cost",
    )
    logger.warning("Transaction %s: %s", tx.id, anomaly.message)
    anomalies.append(anomaly)
    return ZERO


def _acquisition_cost(
    tx: Transaction,
    leg: LegEffect,
    transferred_cost: Decimal,
    anomalies: list[LedgerAnomaly],
) -> Decimal:
    price = tx.unit_price_usd
    match tx.normalized_type(), leg.kind:
        case TransactionType.BUY, LegKind.BASE:
            if price is not None:
                return leg.delta * price
            if tx.quote_qty is not None:
                return abs(tx.quote_qty)
        case TransactionType.SELL, LegKind.QUOTE:
            if price is not None and tx.base_qty is not None:
                return abs(tx.base_qty) * price
            return leg.delta
        case TransactionType.DEPOSIT, LegKind.BASE:
            if tx.cost_basis_usd is not None:
                return tx.cost_basis_usd
            if price is not None:
                return leg.delta * price
        case TransactionType.SWAP, LegKind.QUOTE:
            if tx.value_usd is not None:
                return tx.value_usd
            if price is not None:
                return leg.delta * price
            return transferred_cost
    return _unpriced(tx, leg, anomalies)


def compute_positions(transactions: Sequence[Transaction]) -> LedgerReplay:
    """Replay ``transactions`` (already in replay order) into WAC positions."""

    ensure_ordered(transactions)
    holdings: dict[str, _Holding] = {}
    anomalies: list[LedgerAnomaly] = []

    for tx in transactions:
        legs, leg_anomalies = expand_legs(tx)
        anomalies.extend(leg_anomalies)
        is_swap = tx.normalized_type() is TransactionType.SWAP
        transferred_cost = ZERO
        for leg in legs:
            holding = holdings.setdefault(leg.asset_id, _Holding())
            if leg.delta > 0:
                cost = _acquisition_cost(tx, leg, transferred_cost, anomalies)
                holding.acquire(leg.delta, cost)
            elif leg.delta < 0:
                was_negative = holding.qty < 0
                removed = holding.dispose(-leg.delta)
                if is_swap and leg.kind is LegKind.BASE:
                    transferred_cost += removed
                if holding.qty < 0 and not was_negative:
                    anomaly = LedgerAnomaly(
                        kind=AnomalyKind.NEGATIVE_BALANCE,
                        transaction_id=tx.id,
                        asset_id=leg.asset_id,
                        message=f"Disposal leaves {leg.asset_id} at {holding.qty}",
                    )
                    logger.warning("Transaction %s: %s", tx.id, anomaly.message)
                    anomalies.append(anomaly)

    positions = [
        Position(
            asset_id=asset_id,
            qty=holding.qty,
            cost_usd_total=holding.cost_total,
            avg_cost_usd=holding.avg_cost,
            negative_balance=holding.qty < 0,
        )
        for asset_id, holding in holdings.items()
    ]
    return LedgerReplay(positions=positions, anomalies=anomalies)


def merge_positions(position_sets: Iterable[Iterable[Position]]) -> list[Position]:
    """Sum positions replayed from separate ledgers into one holding per asset.

    Each ledger keeps its own cost basis; the merged average is the summed
    cost over the summed quantity.
    """

    totals: dict[str, _Holding] = {}
    for positions in position_sets:
        for position in positions:
            holding = totals.setdefault(position.asset_id, _Holding())
            holding.qty += position.qty
            holding.cost_total += position.cost_usd_total
    return [
        Position(
            asset_id=asset_id,
            qty=holding.qty,
            cost_usd_total=holding.cost_total,
            avg_cost_usd=holding.avg_cost,
            negative_balance=holding.qty < 0,
        )
        for asset_id, holding in totals.items()
    ]


__all__ = ["compute_positions", "merge_positions"]
