"""Exceptions raised by the ledger and allocation core."""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for contract violations detected by the core."""


class InvalidAmount(LedgerError, ValueError):
    """An amount could not be represented as an exact decimal."""


class UnsupportedTransactionType(LedgerError, ValueError):
    """The transaction type is not one the replay engine understands."""

    def __init__(self, tx_type: object):
        super().__init__(f"Unsupported transaction type: {tx_type!r}")
        self.tx_type = tx_type


class LedgerOrderError(LedgerError):
    """Transactions were not supplied in ascending (timestamp, sequence) order."""


class ZoneDefinitionError(LedgerError, ValueError):
    """Zone definitions violate the allocator's input contract."""


__all__ = [
    "LedgerError",
    "InvalidAmount",
    "UnsupportedTransactionType",
    "LedgerOrderError",
    "ZoneDefinitionError",
]
