"""Database model exports."""

from .portfolio import TRANSACTION_TYPES, Asset, DcaZone, LedgerTransaction, Portfolio
from .prices import PriceSnapshot

__all__ = [
    "Asset",
    "Portfolio",
    "LedgerTransaction",
    "DcaZone",
    "PriceSnapshot",
    "TRANSACTION_TYPES",
]
