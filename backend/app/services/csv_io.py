"""CSV export and import of ledger transactions.

Asset columns hold symbols, not ids, so a file exported from one deployment
can be imported into another. Rows are validated independently; a bad row is
reported with its line number (header is line 1) and skipped.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Mapping

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Portfolio
from app.schemas import TransactionCreateRequest
from app.services import ledger
from dca_ledger.errors import InvalidAmount
from dca_ledger.models import TransactionType
from dca_ledger.money import to_decimal

logger = logging.getLogger(__name__)

CSV_HEADERS = [
    "Data",
    "Tipo",
    "Base Asset",
    "Base Qty",
    "Quote Asset",
    "Quote Qty",
    "Preco",
    "Fee Asset",
    "Fee Qty",
    "Cost Basis USD",
    "Value USD",
    "Exchange",
    "Notas",
]

_DECIMAL_COLUMNS = {
    "Base Qty": "base_qty",
    "Quote Qty": "quote_qty",
    "Preco": "unit_price_usd",
    "Fee Qty": "fee_qty",
    "Cost Basis USD": "cost_basis_usd",
    "Value USD": "value_usd",
}


@dataclass
class ParsedTransaction:
    row: int
    type: TransactionType
    timestamp: datetime
    base_symbol: str | None = None
    base_qty: Decimal | None = None
    quote_symbol: str | None = None
    quote_qty: Decimal | None = None
    fee_symbol: str | None = None
    fee_qty: Decimal | None = None
    unit_price_usd: Decimal | None = None
    cost_basis_usd: Decimal | None = None
    value_usd: Decimal | None = None
    venue: str | None = None
    notes: str | None = None

    @property
    def symbols(self) -> set[str]:
        return {s for s in (self.base_symbol, self.quote_symbol, self.fee_symbol) if s}


@dataclass
class RowError:
    row: int
    message: str


class CsvImportError(ValueError):
    """Raised when an uploaded CSV holds no importable row."""

    def __init__(self, message: str, errors: list[RowError]):
        super().__init__(message)
        self.errors = errors


def _fmt(value: Decimal | None) -> str:
    return "" if value is None else format(value, "f")


def transactions_to_csv(rows: Iterable[object], symbols_by_asset_id: Mapping[int, str]) -> str:
    """Render ledger rows (ORM objects or anything with the same attributes)."""

    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CSV_HEADERS, lineterminator="\n")
    writer.writeheader()
    for tx in rows:
        writer.writerow(
            {
                "Data": tx.timestamp.isoformat(),
                "Tipo": tx.type,
                "Base Asset": symbols_by_asset_id.get(tx.base_asset_id, "") if tx.base_asset_id else "",
                "Base Qty": _fmt(tx.base_qty),
                "Quote Asset": symbols_by_asset_id.get(tx.quote_asset_id, "") if tx.quote_asset_id else "",
                "Quote Qty": _fmt(tx.quote_qty),
                "Preco": _fmt(tx.unit_price_usd),
                "Fee Asset": symbols_by_asset_id.get(tx.fee_asset_id, "") if tx.fee_asset_id else "",
                "Fee Qty": _fmt(tx.fee_qty),
                "Cost Basis USD": _fmt(tx.cost_basis_usd),
                "Value USD": _fmt(tx.value_usd),
                "Exchange": tx.venue or "",
                "Notas": tx.notes or "",
            }
        )
    return buffer.getvalue()


def _parse_row(row_num: int, row: Mapping[str, str | None]) -> ParsedTransaction:
    def cell(name: str) -> str:
        return (row.get(name) or "").strip()

    raw_type = cell("Tipo").upper()
    if not raw_type:
        raise ValueError("Tipo is required")
    try:
        tx_type = TransactionType(raw_type)
    except ValueError as exc:
        raise ValueError(f"Invalid Tipo: {raw_type}") from exc

    raw_date = cell("Data")
    if not raw_date:
        raise ValueError("Data is required")
    try:
        timestamp = datetime.fromisoformat(raw_date.replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValueError(f"Invalid Data: {raw_date}") from exc

    amounts: dict[str, Decimal | None] = {}
    for column, attr in _DECIMAL_COLUMNS.items():
        try:
            value = to_decimal(cell(column))
        except InvalidAmount as exc:
            raise ValueError(f"Invalid {column}: {cell(column)}") from exc
        if value is not None and value < 0:
            raise ValueError(f"{column} must not be negative")
        amounts[attr] = value

    parsed = ParsedTransaction(
        row=row_num,
        type=tx_type,
        timestamp=timestamp,
        base_symbol=cell("Base Asset").upper() or None,
        quote_symbol=cell("Quote Asset").upper() or None,
        fee_symbol=cell("Fee Asset").upper() or None,
        venue=cell("Exchange") or None,
        notes=cell("Notas") or None,
        **amounts,
    )

    if tx_type is TransactionType.FEE:
        if not parsed.fee_symbol:
            raise ValueError("Fee Asset is required for FEE")
        if not parsed.fee_qty:
            raise ValueError("Fee Qty must be positive for FEE")
        return parsed
    if not parsed.base_symbol:
        raise ValueError("Base Asset is required")
    if not parsed.base_qty:
        raise ValueError("Base Qty must be positive")
    if tx_type in (TransactionType.BUY, TransactionType.SELL, TransactionType.SWAP):
        if not parsed.quote_symbol:
            raise ValueError(f"Quote Asset is required for {tx_type.value}")
        if not parsed.quote_qty:
            raise ValueError(f"Quote Qty must be positive for {tx_type.value}")
    if bool(parsed.fee_symbol) != (parsed.fee_qty is not None):
        raise ValueError("Fee Asset and Fee Qty must be given together")
    return parsed


def parse_transactions_csv(text: str) -> tuple[list[ParsedTransaction], list[RowError]]:
    """Parse an exported CSV back into transactions plus per-row errors."""

    reader = csv.DictReader(io.StringIO(text.lstrip("﻿")))
    if reader.fieldnames:
        reader.fieldnames = [name.strip() for name in reader.fieldnames]
    valid: list[ParsedTransaction] = []
    errors: list[RowError] = []
    for idx, row in enumerate(reader):
        row_num = idx + 2
        if not any((value or "").strip() for value in row.values() if isinstance(value, str)):
            continue
        try:
            valid.append(_parse_row(row_num, row))
        except ValueError as exc:
            errors.append(RowError(row=row_num, message=str(exc)))
    return valid, errors


async def import_transactions_csv(
    portfolio: Portfolio,
    text: str,
    session: AsyncSession,
) -> tuple[int, list[RowError]]:
    """Store the valid rows of ``text`` in ``portfolio``.

    Rows naming unknown asset symbols are reported and skipped. Raises
    ``CsvImportError`` when no row can be imported.
    """

    parsed, errors = parse_transactions_csv(text)
    wanted: set[str] = set().union(*(row.symbols for row in parsed))
    ids = await ledger.asset_ids_by_symbol(wanted, session)

    payloads: list[TransactionCreateRequest] = []
    for row in parsed:
        missing = sorted(row.symbols - ids.keys())
        if missing:
            errors.append(RowError(row=row.row, message=f"Asset(s) not found: {', '.join(missing)}"))
            continue
        try:
            payloads.append(
                TransactionCreateRequest(
                    type=row.type,
                    timestamp=row.timestamp,
                    base_asset_id=ids.get(row.base_symbol) if row.base_symbol else None,
                    base_qty=row.base_qty,
                    quote_asset_id=ids.get(row.quote_symbol) if row.quote_symbol else None,
                    quote_qty=row.quote_qty,
                    fee_asset_id=ids.get(row.fee_symbol) if row.fee_symbol else None,
                    fee_qty=row.fee_qty,
                    unit_price_usd=row.unit_price_usd,
                    value_usd=row.value_usd,
                    cost_basis_usd=row.cost_basis_usd,
                    venue=row.venue,
                    notes=row.notes,
                )
            )
        except ValidationError as exc:
            errors.append(RowError(row=row.row, message=exc.errors()[0]["msg"]))

    errors.sort(key=lambda error: error.row)
    if not payloads:
        raise CsvImportError("No valid transactions found in CSV", errors)

    # Stable sort: rows sharing a timestamp keep their file order.
    payloads.sort(key=lambda payload: payload.timestamp)
    await ledger.create_transactions(portfolio, payloads, session)
    logger.info(
        "Imported %d transaction(s) into portfolio %s with %d row error(s)",
        len(payloads),
        portfolio.id,
        len(errors),
    )
    return len(payloads), errors


__all__ = [
    "CSV_HEADERS",
    "CsvImportError",
    "ParsedTransaction",
    "RowError",
    "transactions_to_csv",
    "parse_transactions_csv",
    "import_transactions_csv",
]
