"""Database helpers for persisting exchange rate snapshots."""

from __future__ import annotations

from typing import Final

__all__ = ["EXCHANGE_RATES_TABLE", "INSERT_COLUMNS"]

EXCHANGE_RATES_TABLE: Final[str] = "exchange_rates"

# Column order of every value tuple in the batch insert.
INSERT_COLUMNS: Final[tuple[str, ...]] = (
    "id",
    "symbol",
    "name",
    "price",
    "volume",
    "supply",
    "percentage",
    "timestamp",
)
