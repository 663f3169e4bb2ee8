"""Mark WAC positions to market prices."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Mapping

from .models import Position
from .money import HUNDRED, ZERO


@dataclass(frozen=True)
class PositionValuation:
    asset_id: str
    qty: Decimal
    avg_cost_usd: Decimal
    cost_usd_total: Decimal
    price_usd: Decimal
    value_usd: Decimal
    pnl_usd: Decimal
    pnl_pct: Decimal


@dataclass
class PortfolioValuation:
    positions: list[PositionValuation] = field(default_factory=list)
    value_usd: Decimal = ZERO
    cost_usd: Decimal = ZERO
    unrealized_pnl_usd: Decimal = ZERO
    unrealized_pnl_pct: Decimal = ZERO


def _pct(pnl: Decimal, cost: Decimal) -> Decimal:
    return pnl / cost * HUNDRED if cost != 0 else ZERO


def value_positions(
    positions: Iterable[Position],
    prices: Mapping[str, Decimal],
) -> PortfolioValuation:
    """Value open positions at ``prices`` (keyed by asset id).

    Closed or negative positions are left out; an asset without a price is
    valued at zero.
    """

    result = PortfolioValuation()
    for position in positions:
        if position.qty <= 0:
            continue
        price = prices.get(position.asset_id, ZERO)
        value = position.qty * price
        pnl = value - position.cost_usd_total
        result.positions.append(
            PositionValuation(
                asset_id=position.asset_id,
                qty=position.qty,
                avg_cost_usd=position.avg_cost_usd,
                cost_usd_total=position.cost_usd_total,
                price_usd=price,
                value_usd=value,
                pnl_usd=pnl,
                pnl_pct=_pct(pnl, position.cost_usd_total),
            )
        )
        result.value_usd += value
        result.cost_usd += position.cost_usd_total

    result.unrealized_pnl_usd = result.value_usd - result.cost_usd
    result.unrealized_pnl_pct = _pct(result.unrealized_pnl_usd, result.cost_usd)
    return result


__all__ = ["PositionValuation", "PortfolioValuation", "value_positions"]
