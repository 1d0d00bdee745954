"""CLI + helpers for crawling CoinCap quotes into the exchange rate table."""

from __future__ import annotations

import argparse
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Sequence

import requests

from ccrawler.db.base_backend import BackendStrategy
from ccrawler.errors import FetchError, PersistError
from ccrawler.ingestion.coincap import COINCAP_FRONT_URL, DEFAULT_TIMEOUT, fetch_snapshot
from ccrawler.ingestion.normalize import normalize_quotes
from ccrawler.utils.buckets import minute_bucket, utcnow
from ccrawler.utils.logger import get_logger

LOGGER = get_logger(__name__)

__all__ = ["CrawlReport", "PipelineContext", "crawl_exchange_rates", "parse_args", "main"]


@dataclass(slots=True)
class PipelineContext:
    """State shared by every crawl: the open backend and the quote source."""

    backend: BackendStrategy
    source_url: str = COINCAP_FRONT_URL
    session: requests.Session | None = None
    timeout: float = DEFAULT_TIMEOUT
    clock: Callable[[], datetime] = field(default=utcnow)


@dataclass(slots=True)
class CrawlReport:
    """Outcome of a single crawl."""

    bucket: str
    fetched: int = 0
    inserted: int = 0
    fetch_elapsed: float = 0.0
    persist_elapsed: float = 0.0
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def crawl_exchange_rates(context: PipelineContext) -> CrawlReport:
    """Fetch, order and persist one quote snapshot.

    The minute bucket is taken from ``context.clock`` before the fetch starts
    and shared by every row of the batch. Fetch and persist failures are
    logged and returned on the report instead of being raised.
    """

    started_at = context.clock()
    report = CrawlReport(bucket=minute_bucket(started_at))
    LOGGER.info("Start crawling %s (%s)", context.source_url, started_at.isoformat())

    start = time.perf_counter()
    try:
        quotes = fetch_snapshot(
            context.source_url, session=context.session, timeout=context.timeout
        )
    except FetchError as exc:
        report.fetch_elapsed = time.perf_counter() - start
        report.error = exc
        LOGGER.error("Crawling skipped after %.3fs: %s", report.fetch_elapsed, exc)
        return report
    ordered = normalize_quotes(quotes)
    report.fetched = len(ordered)
    report.fetch_elapsed = time.perf_counter() - start
    LOGGER.info("Processing %s coins took %.3fs", report.fetched, report.fetch_elapsed)

    LOGGER.info("Inserting %s exchange rate datapoints", report.fetched)
    try:
        result = context.backend.insert_rates(ordered, report.bucket)
    except PersistError as exc:
        report.persist_elapsed = exc.elapsed
        report.error = exc
        LOGGER.error(
            "Adding new exchange rates skipped! Processing time: %.3fs, error: %s",
            exc.elapsed,
            exc.__cause__ or exc,
        )
        return report
    report.inserted = result.inserted
    report.persist_elapsed = result.elapsed
    LOGGER.info("Adding %s exchange rates processed in %.3fs", result.inserted, result.elapsed)
    return report


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="ccrawler", description=__doc__)
    parser.add_argument("--db-url", dest="db_url", help="SQLAlchemy database URL")
    parser.add_argument(
        "--interval",
        dest="interval",
        type=int,
        help="Seconds between crawls (<= 0 crawls once)",
    )
    parser.add_argument(
        "--once",
        dest="once",
        action="store_true",
        default=False,
        help="Crawl a single time and exit",
    )
    parser.add_argument("--source-url", dest="source_url", help="Quote source URL")
    parser.add_argument(
        "--retries",
        dest="db_connection_retries",
        type=int,
        help="Database connection attempts",
    )
    parser.add_argument(
        "--backoff",
        dest="db_connection_backoff",
        type=float,
        help="Seconds to wait between connection attempts",
    )
    parser.add_argument(
        "--version",
        dest="version",
        action="store_true",
        default=None,
        help="Print the version and exit",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    from ccrawler import CCrawler, __version__
    from ccrawler.config import CrawlerSettings
    from ccrawler.errors import ConfigurationError, DatabaseConnectionError

    args = parse_args(argv)
    try:
        settings = CrawlerSettings.from_env().override(
            db_url=args.db_url,
            interval=0 if args.once else args.interval,
            source_url=args.source_url,
            db_connection_retries=args.db_connection_retries,
            db_connection_backoff=args.db_connection_backoff,
            version=args.version,
        )
    except ConfigurationError as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        return 2

    if settings.version:
        print(f"ccrawler {__version__}")
        return 0

    LOGGER.info("CCrawler %s", __version__)
    for line in settings.describe():
        LOGGER.info(line)

    crawler = CCrawler(settings)
    try:
        crawler.connect()
    except DatabaseConnectionError as exc:
        LOGGER.error("Database connection failed: %s", exc)
        return 1
    try:
        crawler.run()
    except (KeyboardInterrupt, SystemExit):  # pragma: no cover - interactive stop
        LOGGER.info("Crawler stopped")
    finally:
        crawler.close()
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
