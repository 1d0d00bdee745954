"""Snapshot fetcher for the CoinCap ``front`` quote endpoint."""

from __future__ import annotations

import time
from typing import Any, Mapping

import requests

from ccrawler.errors import FetchError
from ccrawler.ingestion.models import QuoteRecord
from ccrawler.utils.logger import get_logger

LOGGER = get_logger(__name__)

COINCAP_FRONT_URL = "http://coincap.io/front"
DEFAULT_TIMEOUT = 10.0

# JSON key -> QuoteRecord attribute
FIELD_MAP: dict[str, str] = {
    "short": "symbol",
    "long": "name",
    "price": "price",
    "volume": "volume",
    "supply": "supply",
    "perc": "percentage",
    "usdVolume": "usd_volume",
    "mktcap": "market_cap",
    "cap24hrChange": "change_24h",
    "vwapData": "vwap",
    "vwapDataBTC": "vwap_btc",
    "shapeshift": "shapeshift",
}


def _parse_float(value: object | None) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0


def _parse_int(value: object | None) -> int:
    parsed = _parse_float(value)
    if parsed != parsed or parsed in (float("inf"), float("-inf")):
        return 0
    return int(parsed)


def _parse_str(value: object | None) -> str:
    if value is None:
        return ""
    return str(value)


def _parse_bool(value: object | None) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes"}
    return bool(value)


_PARSERS = {
    "symbol": _parse_str,
    "name": _parse_str,
    "supply": _parse_int,
    "shapeshift": _parse_bool,
}


def parse_quote(payload: Mapping[str, Any]) -> QuoteRecord:
    """Map one JSON object onto a :class:`QuoteRecord`.

    Absent, ``null`` or unparsable fields fall back to the zero value of the
    attribute type; unknown keys are ignored.
    """

    values: dict[str, Any] = {}
    for key, attribute in FIELD_MAP.items():
        if key not in payload:
            continue
        parser = _PARSERS.get(attribute, _parse_float)
        values[attribute] = parser(payload[key])
    return QuoteRecord(**values)


def parse_snapshot(payload: object) -> list[QuoteRecord]:
    """Convert a decoded JSON document into quote records."""

    if not isinstance(payload, list):
        raise FetchError(f"Expected a JSON array of quotes, got {type(payload).__name__}")
    records: list[QuoteRecord] = []
    for index, item in enumerate(payload):
        if not isinstance(item, Mapping):
            raise FetchError(f"Quote #{index} is not a JSON object: {item!r}")
        records.append(parse_quote(item))
    return records


def fetch_snapshot(
    url: str = COINCAP_FRONT_URL,
    *,
    session: requests.Session | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> list[QuoteRecord]:
    """Download the current quote snapshot and return it as records.

    Exactly one GET is issued. Transport failures, HTTP error statuses and
    undecodable bodies are reported as :class:`FetchError`; retrying is left to
    the next scheduled crawl.
    """

    sess = session or requests.Session()
    sess.headers.setdefault("User-Agent", "ccrawler/1.0")
    start = time.perf_counter()
    try:
        response = sess.get(url, timeout=timeout)
        response.raise_for_status()
        payload = response.json()
    except requests.RequestException as exc:
        raise FetchError(f"Failed to fetch quotes from {url}: {exc}") from exc
    except ValueError as exc:
        raise FetchError(f"Quote source {url} returned an undecodable body: {exc}") from exc
    finally:
        if session is None:
            sess.close()
    records = parse_snapshot(payload)
    LOGGER.info(
        "Fetched %s quotes from %s in %.3fs",
        len(records),
        url,
        time.perf_counter() - start,
    )
    return records


__all__ = [
    "COINCAP_FRONT_URL",
    "DEFAULT_TIMEOUT",
    "FIELD_MAP",
    "fetch_snapshot",
    "parse_quote",
    "parse_snapshot",
]
