"""Shared logic for SQL (Postgres/SQLite) backends."""

from __future__ import annotations

import time
from typing import Any, Mapping, Sequence

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from ccrawler.db import EXCHANGE_RATES_TABLE, INSERT_COLUMNS
from ccrawler.db.base_backend import BackendStrategy, PersistenceResult
from ccrawler.errors import PersistError, SchemaError
from ccrawler.ingestion.models import ExchangeRateRow, QuoteRecord
from ccrawler.utils.buckets import bucket_id
from ccrawler.utils.logger import get_logger

LOGGER = get_logger(__name__)

SCHEMA_SQL = f"""
CREATE TABLE IF NOT EXISTS {EXCHANGE_RATES_TABLE} (
    id VARCHAR(24) PRIMARY KEY,
    symbol VARCHAR(10) NOT NULL,
    name VARCHAR(30) NOT NULL,
    price REAL NOT NULL,
    volume REAL,
    supply BIGINT,
    percentage REAL,
    timestamp BIGINT
);
"""

PING_SQL = "SELECT 1"

SELECT_COLUMNS_SQL = f"SELECT {', '.join(INSERT_COLUMNS)} FROM {EXCHANGE_RATES_TABLE}"


def row_values(record: QuoteRecord, bucket: str) -> tuple[Any, ...]:
    """Return the bound values of one record in :data:`INSERT_COLUMNS` order."""

    return (
        bucket_id(bucket, record.symbol),
        record.symbol,
        record.name,
        record.price,
        record.volume,
        record.supply,
        record.percentage,
        int(bucket),
    )


def build_insert_statement(
    records: Sequence[QuoteRecord], bucket: str
) -> tuple[str, dict[str, Any]]:
    """Build one multi-row INSERT for ``records`` plus its bind parameters.

    Only the statement skeleton is rendered as text. Every record value is
    bound through a numbered parameter (``:p0``, ``:p1``, ...) following
    :data:`INSERT_COLUMNS`, one value tuple per record.
    """

    if not records:
        raise ValueError("Cannot build an insert statement without records")
    width = len(INSERT_COLUMNS)
    placeholders: list[str] = []
    params: dict[str, Any] = {}
    for index, record in enumerate(records):
        offset = index * width
        names = [f"p{offset + position}" for position in range(width)]
        placeholders.append("(" + ", ".join(f":{name}" for name in names) + ")")
        params.update(zip(names, row_values(record, bucket)))
    query = (
        f"INSERT INTO {EXCHANGE_RATES_TABLE}({', '.join(INSERT_COLUMNS)}) VALUES "
        + ", ".join(placeholders)
    )
    return query, params


def _optional_float(value: object) -> float | None:
    return None if value is None else float(value)  # type: ignore[arg-type]


def _optional_int(value: object) -> int | None:
    return None if value is None else int(value)  # type: ignore[call-overload]


def _row_from_mapping(mapping: Mapping[str, Any]) -> ExchangeRateRow:
    return ExchangeRateRow(
        id=mapping["id"],
        symbol=mapping["symbol"],
        name=mapping["name"],
        price=float(mapping["price"]),
        volume=_optional_float(mapping["volume"]),
        supply=_optional_int(mapping["supply"]),
        percentage=_optional_float(mapping["percentage"]),
        timestamp=_optional_int(mapping["timestamp"]),
    )


class RelationalBackend(BackendStrategy):
    """Base class that encapsulates SQLAlchemy powered interactions.

    The backend owns a single :class:`~sqlalchemy.engine.Connection` that is
    opened by :meth:`connect` and reused by every crawl until :meth:`close`.
    """

    def __init__(self, url: str, *, connect_args: dict[str, Any] | None = None) -> None:
        self.url = url
        self.connect_args = dict(connect_args or {})
        self._engine_instance: Engine | None = None
        self._connection: Connection | None = None

    def _get_engine(self) -> Engine:
        if self._engine_instance is None:
            self._engine_instance = create_engine(
                self.url, future=True, connect_args=self.connect_args
            )
        return self._engine_instance

    @property
    def connected(self) -> bool:
        return self._connection is not None and not self._connection.closed

    def _require_connection(self) -> Connection:
        if self._connection is None or self._connection.closed:
            raise RuntimeError("Backend is not connected; call connect() first")
        return self._connection

    def connect(self) -> None:
        if self.connected:
            return
        connection = self._get_engine().connect()
        try:
            connection.execute(text(PING_SQL))
            connection.rollback()
        except Exception:
            connection.close()
            raise
        LOGGER.info("Connected to %s", self._safe_url())
        self._connection = connection

    def ensure_schema(self) -> None:
        connection = self._require_connection()
        try:
            with connection.begin():
                connection.execute(text(SCHEMA_SQL))
        except SQLAlchemyError as exc:
            raise SchemaError(f"Failed to create {EXCHANGE_RATES_TABLE}: {exc}") from exc
        LOGGER.info("Ensured %s schema exists", EXCHANGE_RATES_TABLE)

    def insert_rates(self, rows: Sequence[QuoteRecord], bucket: str) -> PersistenceResult:
        if not rows:
            return PersistenceResult()
        query, params = build_insert_statement(rows, bucket)
        start = time.perf_counter()
        try:
            connection = self._require_connection()
            with connection.begin():
                connection.execute(text(query), params)
        except (SQLAlchemyError, RuntimeError) as exc:
            elapsed = time.perf_counter() - start
            raise PersistError(
                f"Failed to insert {len(rows)} exchange rates for bucket {bucket}: {exc}",
                elapsed=elapsed,
            ) from exc
        return PersistenceResult(inserted=len(rows), elapsed=time.perf_counter() - start)

    def fetch_by_id(self, row_id: str) -> ExchangeRateRow | None:
        connection = self._require_connection()
        with connection.begin():
            row = connection.execute(
                text(f"{SELECT_COLUMNS_SQL} WHERE id = :row_id"), {"row_id": row_id}
            ).first()
        if row is None:
            return None
        return _row_from_mapping(row._mapping)

    def fetch_bucket(self, bucket: str | int) -> list[ExchangeRateRow]:
        connection = self._require_connection()
        with connection.begin():
            result = connection.execute(
                text(f"{SELECT_COLUMNS_SQL} WHERE timestamp = :bucket ORDER BY symbol"),
                {"bucket": int(bucket)},
            )
            return [_row_from_mapping(row._mapping) for row in result]

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None
        if self._engine_instance is not None:
            self._engine_instance.dispose()
            self._engine_instance = None

    def _safe_url(self) -> str:
        return self._get_engine().url.render_as_string(hide_password=True)


__all__ = ["RelationalBackend", "SCHEMA_SQL", "build_insert_statement", "row_values"]
