"""Exact decimal helpers shared by the replay and allocation engines."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, getcontext, localcontext

from .errors import InvalidAmount

getcontext().prec = 28

ZERO = Decimal("0")
HUNDRED = Decimal("100")

QTY_PLACES = Decimal("0.00000001")
USD_PLACES = Decimal("0.01")

# Digits available while rounding for display; 28 runs out near 1e20 at 8 dp.
QUANTIZE_PRECISION = 60


def to_decimal(value: Decimal | int | str | None) -> Decimal | None:
    """Parse ``value`` into a ``Decimal`` without passing through binary float.

    ``None`` and blank strings map to ``None`` so optional legs stay optional.
    """

    if value is None:
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise InvalidAmount(f"Boolean is not an amount: {value!r}")
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            result = Decimal(text)
        except InvalidOperation as exc:
            raise InvalidAmount(f"Not a decimal amount: {value!r}") from exc
    else:
        raise InvalidAmount(f"Amounts must be Decimal, int or str, got {type(value).__name__}")
    if not result.is_finite():
        raise InvalidAmount(f"Amount must be finite: {value!r}")
    return result


def _quantize(value: Decimal, places: Decimal) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = QUANTIZE_PRECISION
        return value.quantize(places, rounding=ROUND_HALF_UP)


def quantize_qty(value: Decimal) -> Decimal:
    return _quantize(value, QTY_PLACES)


def quantize_usd(value: Decimal) -> Decimal:
    return _quantize(value, USD_PLACES)


# Percentages are reported with the same two decimals as USD amounts.
quantize_pct = quantize_usd


__all__ = [
    "ZERO",
    "HUNDRED",
    "QTY_PLACES",
    "USD_PLACES",
    "to_decimal",
    "quantize_qty",
    "quantize_usd",
    "quantize_pct",
]
