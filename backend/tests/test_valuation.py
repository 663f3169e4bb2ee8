"""Valuation of WAC positions at current prices."""

from __future__ import annotations

from decimal import Decimal

from conftest import make_tx
from dca_ledger import compute_positions, value_positions


def build_ledger():
    return [
        make_tx("d1", "DEPOSIT", 0, base_asset_id="USDT", base_qty="5000", cost_basis_usd="5000"),
        make_tx("b1", "BUY", 1, base_asset_id="BTC", base_qty="0.1", quote_asset_id="USDT", quote_qty="4000"),
        make_tx("b2", "BUY", 2, base_asset_id="ETH", base_qty="1", quote_asset_id="USDT", quote_qty="1000"),
    ]


def test_values_open_positions_and_totals():
    replay = compute_positions(build_ledger())
    prices = {"BTC": Decimal("50000"), "ETH": Decimal("800"), "USDT": Decimal("1")}

    valuation = value_positions(replay.positions, prices)

    by_asset = {item.asset_id: item for item in valuation.positions}
    # USDT is fully spent and drops out of the valuation.
    assert set(by_asset) == {"BTC", "ETH"}
    assert by_asset["BTC"].value_usd == Decimal("5000.0")
    assert by_asset["BTC"].pnl_usd == Decimal("1000.0")
    assert by_asset["BTC"].pnl_pct == Decimal("25")
    assert by_asset["ETH"].pnl_usd == Decimal("-200")
    assert valuation.value_usd == Decimal("5800")
    assert valuation.cost_usd == Decimal("5000")
    assert valuation.unrealized_pnl_usd == Decimal("800")
    assert valuation.unrealized_pnl_pct == Decimal("16")


def test_missing_price_values_at_zero():
    replay = compute_positions(build_ledger()[:2])

    valuation = value_positions(replay.positions, {})

    btc = next(item for item in valuation.positions if item.asset_id == "BTC")
    assert btc.price_usd == Decimal("0")
    assert btc.value_usd == Decimal("0")
    assert btc.pnl_usd == Decimal("-4000")


def test_zero_cost_position_has_zero_pct():
    replay = compute_positions(
        [make_tx("d1", "DEPOSIT", 0, base_asset_id="SOL", base_qty="2", cost_basis_usd="0")]
    )

    valuation = value_positions(replay.positions, {"SOL": Decimal("150")})

    assert valuation.positions[0].pnl_usd == Decimal("300")
    assert valuation.positions[0].pnl_pct == Decimal("0")
    assert valuation.unrealized_pnl_pct == Decimal("0")
