"""Deployable capital held in stable-value assets."""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Mapping

from .models import Position
from .money import ZERO, quantize_usd

DEFAULT_STABLECOIN_SYMBOLS: frozenset[str] = frozenset({"USD", "USDT", "USDC"})


def stablecoin_capital(
    positions: Iterable[Position],
    symbols_by_asset_id: Mapping[str, str],
    stable_symbols: Iterable[str] = DEFAULT_STABLECOIN_SYMBOLS,
) -> Decimal:
    """Sum the quantity (not the cost) of stable-value positions, rounded to cents."""

    allowed = {symbol.upper() for symbol in stable_symbols}
    total = ZERO
    for position in positions:
        symbol = symbols_by_asset_id.get(position.asset_id)
        if symbol and symbol.upper() in allowed:
            total += position.qty
    return quantize_usd(total)


__all__ = ["DEFAULT_STABLECOIN_SYMBOLS", "stablecoin_capital"]
