"""Backend strategy interfaces for ccrawler."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

from ccrawler.ingestion.models import ExchangeRateRow, QuoteRecord


@dataclass(slots=True)
class PersistenceResult:
    """Represents how many rows a batch inserted and how long it took."""

    inserted: int = 0
    elapsed: float = 0.0


class BackendStrategy(ABC):
    """Common interface implemented by every database backend."""

    @abstractmethod
    def connect(self) -> None:
        """Open the long-lived connection and verify it with a ping."""

    @abstractmethod
    def ensure_schema(self) -> None:
        """Create the ``exchange_rates`` table if it does not exist yet."""

    @abstractmethod
    def insert_rates(self, rows: Sequence[QuoteRecord], bucket: str) -> PersistenceResult:
        """Insert one crawl's quotes as a single batch keyed by ``bucket``."""

    @abstractmethod
    def fetch_by_id(self, row_id: str) -> ExchangeRateRow | None:
        """Return the row stored under ``row_id`` if any."""

    @abstractmethod
    def fetch_bucket(self, bucket: str | int) -> list[ExchangeRateRow]:
        """Return every row of a minute bucket ordered by symbol."""

    def close(self) -> None:  # pragma: no cover - optional cleanup hook
        """Backends may override to release connections/resources."""


__all__ = ["BackendStrategy", "PersistenceResult"]
