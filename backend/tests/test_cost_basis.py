"""Moving weighted-average cost replay tests."""

from __future__ import annotations

from decimal import Decimal

import pytest

from conftest import make_tx
from dca_ledger import AnomalyKind, LedgerOrderError, compute_positions, merge_positions


def _position(replay, asset_id):
    position = replay.position_for(asset_id)
    assert position is not None, f"no position for {asset_id}"
    return position


def test_buy_then_sell_everything_clears_cost():
    ledger = [
        make_tx("b1", "BUY", 0, base_asset_id="BTC", base_qty="0.5", quote_asset_id="USDT", quote_qty="20000"),
        make_tx("s1", "SELL", 1, base_asset_id="BTC", base_qty="0.5", quote_asset_id="USDT", quote_qty="25000"),
    ]

    btc = _position(compute_positions(ledger), "BTC")

    assert btc.qty == Decimal("0")
    assert btc.cost_usd_total == Decimal("0")
    assert btc.avg_cost_usd == Decimal("0")
    assert btc.negative_balance is False


def test_average_is_weighted_and_unchanged_by_partial_sell():
    ledger = [
        make_tx("b1", "BUY", 0, base_asset_id="BTC", base_qty="1", quote_asset_id="USDT", quote_qty="30000"),
        make_tx("b2", "BUY", 1, base_asset_id="BTC", base_qty="1", quote_asset_id="USDT", quote_qty="50000"),
        make_tx("s1", "SELL", 2, base_asset_id="BTC", base_qty="0.5", quote_asset_id="USDT", quote_qty="30000"),
    ]

    btc = _position(compute_positions(ledger), "BTC")

    assert btc.qty == Decimal("1.5")
    assert btc.avg_cost_usd == Decimal("40000")
    assert btc.cost_usd_total == Decimal("60000")


def test_buy_prefers_unit_price_over_quote_quantity():
    ledger = [
        make_tx(
            "b1",
            "BUY",
            base_asset_id="ETH",
            base_qty="2",
            quote_asset_id="BTC",
            quote_qty="0.1",
            unit_price_usd="3000",
        )
    ]

    eth = _position(compute_positions(ledger), "ETH")

    assert eth.cost_usd_total == Decimal("6000")
    assert eth.avg_cost_usd == Decimal("3000")


def test_sell_proceeds_enter_quote_position_at_face_value():
    ledger = [
        make_tx("b1", "BUY", 0, base_asset_id="BTC", base_qty="1", quote_asset_id="USDT", quote_qty="100"),
        make_tx("s1", "SELL", 1, base_asset_id="BTC", base_qty="1", quote_asset_id="USDT", quote_qty="150"),
    ]

    replay = compute_positions(ledger)
    usdt = _position(replay, "USDT")

    # The initial spend drove USDT to -100; only the 50 units above zero carry cost.
    assert usdt.qty == Decimal("50")
    assert usdt.cost_usd_total == Decimal("50")
    assert usdt.avg_cost_usd == Decimal("1")


def test_refilling_a_shortfall_keeps_the_average_at_face_value():
    ledger = [
        make_tx("b1", "BUY", 0, base_asset_id="BTC", base_qty="1", quote_asset_id="USDT", quote_qty="100"),
        make_tx("s1", "SELL", 1, base_asset_id="BTC", base_qty="1", quote_asset_id="USDT", quote_qty="101"),
    ]

    usdt = _position(compute_positions(ledger), "USDT")

    assert usdt.qty == Decimal("1")
    assert usdt.cost_usd_total == Decimal("1")
    assert usdt.avg_cost_usd == Decimal("1")
    assert usdt.negative_balance is False


def test_acquisition_that_stays_negative_adds_no_cost():
    ledger = [
        make_tx("w1", "WITHDRAW", 0, base_asset_id="ETH", base_qty="3"),
        make_tx("d1", "DEPOSIT", 1, base_asset_id="ETH", base_qty="1", cost_basis_usd="2000"),
    ]

    eth = _position(compute_positions(ledger), "ETH")

    assert eth.qty == Decimal("-2")
    assert eth.cost_usd_total == Decimal("0")
    assert eth.negative_balance is True


def test_tiny_quantity_with_large_cost_rounds_for_display():
    ledger = [
        make_tx("d1", "DEPOSIT", base_asset_id="BTC", base_qty="0.000000000000000001", cost_basis_usd="1000")
    ]

    rounded = _position(compute_positions(ledger), "BTC").quantized()

    assert rounded.qty == Decimal("0E-8")
    assert rounded.cost_usd_total == Decimal("1000.00")
    assert rounded.avg_cost_usd == Decimal("1000000000000000000000.00000000")


def test_merge_positions_sums_each_portfolio_separately():
    first = compute_positions(
        [make_tx("b1", "BUY", 0, base_asset_id="BTC", base_qty="1", quote_asset_id="USDT", quote_qty="30000")]
    )
    second = compute_positions(
        [
            make_tx("d1", "DEPOSIT", 0, base_asset_id="BTC", base_qty="1", cost_basis_usd="50000"),
            make_tx("w1", "WITHDRAW", 1, base_asset_id="ETH", base_qty="2"),
        ]
    )

    merged = {p.asset_id: p for p in merge_positions([first.positions, second.positions])}

    assert list(merged) == ["BTC", "USDT", "ETH"]
    assert merged["BTC"].qty == Decimal("2")
    assert merged["BTC"].cost_usd_total == Decimal("80000")
    assert merged["BTC"].avg_cost_usd == Decimal("40000")
    assert merged["USDT"].negative_balance is True
    assert merged["ETH"].avg_cost_usd == Decimal("0")
    assert merged["ETH"].negative_balance is True


def test_deposit_uses_cost_basis_when_given():
    ledger = [
        make_tx("d1", "DEPOSIT", base_asset_id="BTC", base_qty="0.2", cost_basis_usd="5000", unit_price_usd="60000")
    ]

    replay = compute_positions(ledger)
    btc = _position(replay, "BTC")

    assert btc.cost_usd_total == Decimal("5000")
    assert btc.avg_cost_usd == Decimal("25000")
    assert replay.anomalies == []


def test_deposit_without_price_is_zero_cost_and_reported():
    ledger = [
        make_tx("b1", "BUY", 0, base_asset_id="BTC", base_qty="1", quote_asset_id="USDT", quote_qty="40000"),
        make_tx("d1", "DEPOSIT", 1, base_asset_id="BTC", base_qty="1"),
    ]

    replay = compute_positions(ledger)
    btc = _position(replay, "BTC")

    assert btc.qty == Decimal("2")
    assert btc.cost_usd_total == Decimal("40000")
    assert btc.avg_cost_usd == Decimal("20000")
    kinds = [(a.kind, a.transaction_id) for a in replay.anomalies if a.asset_id == "BTC"]
    assert kinds == [(AnomalyKind.UNPRICED_ACQUISITION, "d1")]


def test_swap_transfers_cost_basis_without_value():
    ledger = [
        make_tx("b1", "BUY", 0, base_asset_id="BTC", base_qty="1", quote_asset_id="USDT", quote_qty="30000"),
        make_tx("s1", "SWAP", 1, base_asset_id="BTC", base_qty="0.5", quote_asset_id="ETH", quote_qty="5"),
    ]

    replay = compute_positions(ledger)
    btc = _position(replay, "BTC")
    eth = _position(replay, "ETH")

    assert btc.qty == Decimal("0.5")
    assert btc.cost_usd_total == Decimal("15000")
    assert eth.qty == Decimal("5")
    assert eth.cost_usd_total == Decimal("15000")
    assert eth.avg_cost_usd == Decimal("3000")


def test_swap_value_usd_overrides_transfer():
    ledger = [
        make_tx("b1", "BUY", 0, base_asset_id="BTC", base_qty="1", quote_asset_id="USDT", quote_qty="30000"),
        make_tx(
            "s1",
            "SWAP",
            1,
            base_asset_id="BTC",
            base_qty="0.5",
            quote_asset_id="ETH",
            quote_qty="5",
            value_usd="20000",
        ),
    ]

    eth = _position(compute_positions(ledger), "ETH")

    assert eth.cost_usd_total == Decimal("20000")
    assert eth.avg_cost_usd == Decimal("4000")


def test_fee_disposal_removes_cost_at_average():
    ledger = [
        make_tx("b1", "BUY", 0, base_asset_id="BNB", base_qty="10", quote_asset_id="USDT", quote_qty="3000"),
        make_tx("f1", "FEE", 1, fee_asset_id="BNB", fee_qty="1"),
    ]

    bnb = _position(compute_positions(ledger), "BNB")

    assert bnb.qty == Decimal("9")
    assert bnb.cost_usd_total == Decimal("2700")
    assert bnb.avg_cost_usd == Decimal("300")


def test_negative_drift_is_flagged_once():
    ledger = [
        make_tx("d1", "DEPOSIT", 0, base_asset_id="ETH", base_qty="1", cost_basis_usd="2000"),
        make_tx("w1", "WITHDRAW", 1, base_asset_id="ETH", base_qty="1.5"),
        make_tx("w2", "WITHDRAW", 2, base_asset_id="ETH", base_qty="0.5"),
    ]

    replay = compute_positions(ledger)
    eth = _position(replay, "ETH")

    assert eth.qty == Decimal("-1.0")
    assert eth.negative_balance is True
    assert eth.cost_usd_total == Decimal("0")
    assert eth.avg_cost_usd == Decimal("0")
    negative = [a for a in replay.anomalies if a.kind is AnomalyKind.NEGATIVE_BALANCE]
    assert [a.transaction_id for a in negative] == ["w1"]


def test_positions_keep_first_touch_order():
    ledger = [
        make_tx("d1", "DEPOSIT", 0, base_asset_id="USDC", base_qty="100", cost_basis_usd="100"),
        make_tx("b1", "BUY", 1, base_asset_id="SOL", base_qty="1", quote_asset_id="USDC", quote_qty="100"),
    ]

    replay = compute_positions(ledger)

    assert [p.asset_id for p in replay.positions] == ["USDC", "SOL"]


def test_quantized_rounds_half_up():
    ledger = [
        make_tx("b1", "BUY", 0, base_asset_id="BTC", base_qty="3", quote_asset_id="USDT", quote_qty="100"),
    ]

    btc = _position(compute_positions(ledger), "BTC").quantized()

    assert btc.qty == Decimal("3.00000000")
    assert btc.cost_usd_total == Decimal("100.00")
    assert btc.avg_cost_usd == Decimal("33.33333333")


def test_unordered_ledger_raises():
    ledger = [
        make_tx("b1", "BUY", 2, base_asset_id="BTC", base_qty="1", quote_asset_id="USDT", quote_qty="1"),
        make_tx("d1", "DEPOSIT", 1, base_asset_id="USDT", base_qty="1"),
    ]

    with pytest.raises(LedgerOrderError):
        compute_positions(ledger)
