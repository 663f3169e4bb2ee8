"""Balance replay over an ordered transaction ledger."""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Sequence

from .errors import LedgerOrderError
from .legs import expand_legs
from .models import LedgerAnomaly, Transaction
from .money import ZERO


def order_ledger(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Return transactions sorted by ``(timestamp, sequence)`` ascending."""

    return sorted(transactions, key=lambda tx: tx.replay_key)


def ensure_ordered(transactions: Sequence[Transaction]) -> None:
    """Raise ``LedgerOrderError`` unless replay keys never decrease."""

    for previous, current in zip(transactions, transactions[1:]):
        if current.replay_key < previous.replay_key:
            raise LedgerOrderError(
                f"Transaction {current.id} ({current.timestamp.isoformat()}, seq {current.sequence}) "
                f"precedes {previous.id} ({previous.timestamp.isoformat()}, seq {previous.sequence})"
            )


def replay_balances(
    transactions: Sequence[Transaction],
) -> tuple[dict[str, Decimal], list[LedgerAnomaly]]:
    """Replay every leg and return signed balances keyed by asset id."""

    ensure_ordered(transactions)
    balances: dict[str, Decimal] = {}
    anomalies: list[LedgerAnomaly] = []
    for tx in transactions:
        legs, leg_anomalies = expand_legs(tx)
        anomalies.extend(leg_anomalies)
        for leg in legs:
            balances[leg.asset_id] = balances.get(leg.asset_id, ZERO) + leg.delta
    return balances, anomalies


def compute_balances(transactions: Sequence[Transaction]) -> dict[str, Decimal]:
    balances, _ = replay_balances(transactions)
    return balances


def compute_balance(asset_id: str, transactions: Sequence[Transaction]) -> Decimal:
    """Return the signed balance of ``asset_id`` after replaying the ledger."""

    return compute_balances(transactions).get(asset_id, ZERO)


__all__ = [
    "order_ledger",
    "ensure_ordered",
    "replay_balances",
    "compute_balances",
    "compute_balance",
]
