"""Stablecoin capital aggregation tests."""

from __future__ import annotations

from decimal import Decimal

from app.config import get_settings
from dca_ledger import DEFAULT_STABLECOIN_SYMBOLS, Position, stablecoin_capital


def _pos(asset_id: str, qty: str, cost: str = "0") -> Position:
    return Position(asset_id=asset_id, qty=Decimal(qty), cost_usd_total=Decimal(cost), avg_cost_usd=Decimal("0"))


def test_sums_stablecoin_quantities_not_cost():
    positions = [_pos("1", "300", cost="290"), _pos("2", "200", cost="10"), _pos("3", "0.5", cost="20000")]
    symbols = {"1": "USDT", "2": "usdc", "3": "BTC"}

    assert stablecoin_capital(positions, symbols) == Decimal("500.00")


def test_no_stablecoins_yields_zero():
    assert stablecoin_capital([_pos("3", "1")], {"3": "BTC"}) == Decimal("0.00")


def test_custom_allow_list_and_unknown_assets():
    positions = [_pos("1", "10.005"), _pos("2", "7"), _pos("9", "100")]
    symbols = {"1": "DAI", "2": "USDT"}

    assert stablecoin_capital(positions, symbols, stable_symbols=["dai"]) == Decimal("10.01")


def test_settings_default_matches_core_allow_list():
    assert set(get_settings().stablecoin_symbols) == DEFAULT_STABLECOIN_SYMBOLS
