"""Deterministic ordering of fetched quote snapshots."""

from __future__ import annotations

from typing import Iterable

from ccrawler.ingestion.models import QuoteRecord


def _symbol_key(record: QuoteRecord) -> bytes:
    return record.symbol.encode("utf-8")


def normalize_quotes(records: Iterable[QuoteRecord]) -> list[QuoteRecord]:
    """Return ``records`` ordered by the raw bytes of their symbol.

    ``sorted`` is stable, so quotes sharing a symbol keep the order in which the
    source returned them. Upper-case tickers therefore sort before lower-case
    ones (``"BTC" < "ZEC" < "btc"``).
    """

    return sorted(records, key=_symbol_key)


__all__ = ["normalize_quotes"]
