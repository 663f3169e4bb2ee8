"""Balance replay tests for the per-type leg table."""

from __future__ import annotations

from decimal import Decimal

import pytest

from conftest import make_tx
from dca_ledger import (
    AnomalyKind,
    LedgerOrderError,
    UnsupportedTransactionType,
    compute_balance,
    compute_balances,
    order_ledger,
)
from dca_ledger.legs import expand_legs
from dca_ledger.models import LegKind
from dca_ledger.replay import replay_balances


def build_ledger():
    return [
        make_tx("d1", "DEPOSIT", 0, base_asset_id="USDT", base_qty="1000"),
        make_tx("b1", "BUY", 1, base_asset_id="BTC", base_qty="0.01", quote_asset_id="USDT", quote_qty="400"),
        make_tx(
            "s1",
            "SWAP",
            2,
            base_asset_id="BTC",
            base_qty="0.004",
            quote_asset_id="ETH",
            quote_qty="0.1",
            fee_asset_id="ETH",
            fee_qty="0.001",
        ),
        make_tx("x1", "SELL", 3, base_asset_id="ETH", base_qty="0.05", quote_asset_id="USDT", quote_qty="150"),
        make_tx("w1", "WITHDRAW", 4, base_asset_id="USDT", base_qty="100"),
        make_tx("f1", "FEE", 5, fee_asset_id="USDT", fee_qty="1.5"),
    ]


def test_balances_follow_leg_table():
    balances = compute_balances(build_ledger())

    assert balances["USDT"] == Decimal("648.5")
    assert balances["BTC"] == Decimal("0.006")
    assert balances["ETH"] == Decimal("0.049")


def test_compute_balance_for_untouched_asset_is_zero():
    assert compute_balance("SOL", build_ledger()) == Decimal("0")


def test_fee_leg_is_applied_for_every_type():
    tx = make_tx(
        "b1",
        "BUY",
        base_asset_id="BTC",
        base_qty="1",
        quote_asset_id="USDT",
        quote_qty="100",
        fee_asset_id="BNB",
        fee_qty="0.2",
    )

    legs, anomalies = expand_legs(tx)

    assert anomalies == []
    assert [(leg.asset_id, leg.delta, leg.kind) for leg in legs] == [
        ("BTC", Decimal("1"), LegKind.BASE),
        ("USDT", Decimal("-100"), LegKind.QUOTE),
        ("BNB", Decimal("-0.2"), LegKind.FEE),
    ]


def test_fee_in_base_asset_reduces_acquired_quantity():
    ledger = [
        make_tx(
            "b1",
            "BUY",
            base_asset_id="BTC",
            base_qty="1",
            quote_asset_id="USDT",
            quote_qty="100",
            fee_asset_id="BTC",
            fee_qty="0.001",
        )
    ]

    assert compute_balance("BTC", ledger) == Decimal("0.999")


def test_missing_quantity_is_reported_not_raised():
    ledger = [
        make_tx("d1", "DEPOSIT", 0, base_asset_id="USDT", base_qty="50"),
        make_tx("b1", "BUY", 1, base_asset_id="BTC", base_qty="0.001", quote_asset_id="USDT"),
    ]

    balances, anomalies = replay_balances(ledger)

    assert balances == {"USDT": Decimal("50"), "BTC": Decimal("0.001")}
    assert len(anomalies) == 1
    assert anomalies[0].kind is AnomalyKind.MISSING_QUANTITY
    assert anomalies[0].transaction_id == "b1"
    assert anomalies[0].asset_id == "USDT"


def test_negative_input_quantities_keep_their_sign_and_are_reported():
    ledger = [make_tx("x1", "SELL", base_asset_id="ETH", base_qty="-2", quote_asset_id="USDT", quote_qty="10")]

    assert compute_balance("ETH", ledger) == Decimal("2")
    assert compute_balance("USDT", ledger) == Decimal("10")

    legs, anomalies = expand_legs(ledger[0])
    assert [(leg.asset_id, leg.delta) for leg in legs] == [("ETH", Decimal("2")), ("USDT", Decimal("10"))]
    assert [(a.kind, a.asset_id) for a in anomalies] == [(AnomalyKind.NEGATIVE_QUANTITY, "ETH")]


def test_out_of_order_ledger_raises():
    ledger = build_ledger()
    ledger[1], ledger[2] = ledger[2], ledger[1]

    with pytest.raises(LedgerOrderError):
        compute_balances(ledger)


def test_sequence_breaks_timestamp_ties():
    first = make_tx("a", "DEPOSIT", 0, base_asset_id="USDT", base_qty="10", sequence=2)
    second = make_tx("b", "WITHDRAW", 0, base_asset_id="USDT", base_qty="5", sequence=1)

    ordered = order_ledger([first, second])

    assert [tx.id for tx in ordered] == ["b", "a"]
    with pytest.raises(LedgerOrderError):
        compute_balances([first, second])


def test_unknown_type_raises():
    ledger = [make_tx("t1", "STAKE", base_asset_id="ETH", base_qty="1")]

    with pytest.raises(UnsupportedTransactionType):
        compute_balances(ledger)


def test_lowercase_type_is_normalized():
    ledger = [make_tx("d1", "deposit", base_asset_id="USDT", base_qty="5")]

    assert compute_balance("USDT", ledger) == Decimal("5")


def test_replay_is_deterministic():
    ledger = build_ledger()

    assert compute_balances(ledger) == compute_balances(list(ledger))
