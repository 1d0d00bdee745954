"""Data models shared across ingestion and persistence modules."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class QuoteRecord:
    """A single coin quote as returned by the CoinCap ``front`` endpoint.

    Only ``symbol``, ``name``, ``price``, ``volume``, ``supply`` and
    ``percentage`` are persisted. The remaining market figures are carried for
    the lifetime of one crawl and then discarded.
    """

    symbol: str = ""
    name: str = ""
    price: float = 0.0
    volume: float = 0.0
    supply: int = 0
    percentage: float = 0.0
    usd_volume: float = 0.0
    market_cap: float = 0.0
    change_24h: float = 0.0
    vwap: float = 0.0
    vwap_btc: float = 0.0
    shapeshift: bool = False


@dataclass(slots=True)
class ExchangeRateRow:
    """Representation of one row of the ``exchange_rates`` table."""

    id: str
    symbol: str
    name: str
    price: float
    volume: float | None = None
    supply: int | None = None
    percentage: float | None = None
    timestamp: int | None = None
