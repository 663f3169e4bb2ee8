"""Expansion of ledger transactions into per-asset quantity legs."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from .models import AnomalyKind, LedgerAnomaly, LegEffect, LegKind, Transaction, TransactionType

logger = logging.getLogger(__name__)


def _signs_for(tx_type: TransactionType) -> tuple[Optional[int], Optional[int]]:
    """Sign applied to the (base, quote) quantities; ``None`` means no such leg."""

    match tx_type:
        case TransactionType.BUY:
            return 1, -1
        case TransactionType.SELL:
            return -1, 1
        case TransactionType.DEPOSIT:
            return 1, None
        case TransactionType.WITHDRAW:
            return -1, None
        case TransactionType.SWAP:
            return -1, 1
        case TransactionType.FEE:
            return None, None
    raise AssertionError(f"Unhandled transaction type {tx_type}")


def _leg(
    tx: Transaction,
    kind: LegKind,
    asset_id: Optional[str],
    qty: Optional[Decimal],
    sign: int,
    anomalies: list[LedgerAnomaly],
    *,
    required: bool,
) -> Optional[LegEffect]:
    if asset_id and qty is not None:
        if qty < 0:
            anomaly = LedgerAnomaly(
                kind=AnomalyKind.NEGATIVE_QUANTITY,
                transaction_id=tx.id,
                asset_id=asset_id,
                message=f"{tx.normalized_type().value} {kind.value.lower()} leg has negative quantity {qty}",
            )
            logger.warning("Transaction %s: %s", tx.id, anomaly.message)
            anomalies.append(anomaly)
        return LegEffect(asset_id=asset_id, delta=qty * sign, kind=kind)
    if asset_id and qty is None:
        anomaly = LedgerAnomaly(
            kind=AnomalyKind.MISSING_QUANTITY,
            transaction_id=tx.id,
            asset_id=asset_id,
            message=f"{tx.normalized_type().value} {kind.value.lower()} leg has no quantity; leg skipped",
        )
    elif qty is not None or required:
        anomaly = LedgerAnomaly(
            kind=AnomalyKind.MISSING_ASSET,
            transaction_id=tx.id,
            asset_id=None,
            message=f"{tx.normalized_type().value} {kind.value.lower()} leg has no asset; leg skipped",
        )
    else:
        return None
    logger.warning("Transaction %s: %s", tx.id, anomaly.message)
    anomalies.append(anomaly)
    return None


def expand_legs(tx: Transaction) -> tuple[list[LegEffect], list[LedgerAnomaly]]:
    """Return the signed legs of ``tx`` in base, quote, fee order.

    Missing amounts never raise: the affected leg is dropped and reported as
    an anomaly. Negative quantities are applied as given (a SELL of ``-2``
    adds two units) and reported. An unknown type raises
    ``UnsupportedTransactionType``.
    """

    tx_type = tx.normalized_type()
    base_sign, quote_sign = _signs_for(tx_type)
    legs: list[LegEffect] = []
    anomalies: list[LedgerAnomaly] = []

    if base_sign is not None:
        leg = _leg(tx, LegKind.BASE, tx.base_asset_id, tx.base_qty, base_sign, anomalies, required=True)
        if leg is not None:
            legs.append(leg)
    if quote_sign is not None:
        leg = _leg(
            tx,
            LegKind.QUOTE,
            tx.quote_asset_id,
            tx.quote_qty,
            quote_sign,
            anomalies,
            required=tx_type is TransactionType.SWAP,
        )
        if leg is not None:
            legs.append(leg)

    fee_leg = _leg(
        tx,
        LegKind.FEE,
        tx.fee_asset_id,
        tx.fee_qty,
        -1,
        anomalies,
        required=tx_type is TransactionType.FEE,
    )
    if fee_leg is not None:
        legs.append(fee_leg)
    return legs, anomalies


__all__ = ["expand_legs"]
