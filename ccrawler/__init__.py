"""Public interface for the ccrawler package."""

from __future__ import annotations

import time
from importlib import metadata as importlib_metadata
from typing import Callable

import requests

from ccrawler.config import CrawlerSettings
from ccrawler.crawl import CrawlReport, PipelineContext, crawl_exchange_rates
from ccrawler.db.base_backend import BackendStrategy, PersistenceResult
from ccrawler.db.connection import connect_with_retry, ensure_schema_best_effort
from ccrawler.db.postgres_backend import PostgresBackend
from ccrawler.db.relational_backend import RelationalBackend
from ccrawler.errors import (
    ConfigurationError,
    CrawlerError,
    DatabaseConnectionError,
    FetchError,
    PersistError,
    SchemaError,
)
from ccrawler.ingestion.models import ExchangeRateRow, QuoteRecord
from ccrawler.scheduler import CrawlScheduler, SchedulerState

__all__ = [
    "__version__",
    "CCrawler",
    "CrawlerSettings",
    "CrawlReport",
    "CrawlScheduler",
    "ExchangeRateRow",
    "PersistenceResult",
    "PipelineContext",
    "QuoteRecord",
    "SchedulerState",
    "CrawlerError",
    "ConfigurationError",
    "DatabaseConnectionError",
    "FetchError",
    "PersistError",
    "SchemaError",
]

try:
    __version__ = importlib_metadata.version("ccrawler")
except importlib_metadata.PackageNotFoundError:  # pragma: no cover - fallback for local runs
    __version__ = "0.1.0"


class CCrawler:
    """Package facade that wires settings, backend, pipeline and scheduler."""

    __slots__ = ("settings", "backend", "session", "scheduler", "schema_ready")

    # Provide direct access to the package version as a class attribute.
    __version__ = __version__

    def __init__(
        self,
        settings: CrawlerSettings | None = None,
        *,
        backend: BackendStrategy | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.settings = settings or CrawlerSettings.from_env()
        self.backend = backend or self._build_backend()
        self.session = session
        self.scheduler: CrawlScheduler[CrawlReport] | None = None
        self.schema_ready = False

    def _build_backend(self) -> BackendStrategy:
        url = self.settings.database_url()
        if url.get_backend_name() == "postgresql":
            return PostgresBackend(url.render_as_string(hide_password=False))
        return RelationalBackend(url.render_as_string(hide_password=False))

    def connect(self, *, sleep: Callable[[float], None] = time.sleep) -> BackendStrategy:
        """Connect with retries and make sure the table exists.

        Raises :class:`DatabaseConnectionError` once every attempt failed; a
        failed schema creation is only logged.
        """

        connect_with_retry(
            self.backend,
            attempts=self.settings.db_connection_retries,
            backoff=self.settings.db_connection_backoff,
            sleep=sleep,
        )
        self.schema_ready = ensure_schema_best_effort(self.backend)
        return self.backend

    def context(self) -> PipelineContext:
        return PipelineContext(
            backend=self.backend,
            source_url=self.settings.source_url,
            session=self.session,
            timeout=self.settings.fetch_timeout,
        )

    def crawl(self) -> CrawlReport:
        """Run a single Fetch -> Normalize -> Persist cycle."""

        return crawl_exchange_rates(self.context())

    def run(self, interval: int | None = None) -> CrawlReport | None:
        """Crawl once (``interval <= 0``) or forever every ``interval`` seconds."""

        seconds = self.settings.interval if interval is None else interval
        context = self.context()
        self.scheduler = CrawlScheduler(
            lambda: crawl_exchange_rates(context),
            max_instances=self.settings.max_instances,
        )
        if seconds <= 0:
            return self.scheduler.run_once()
        self.scheduler.run_every(seconds)
        return None

    def close(self) -> None:
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=False)
        self.backend.close()

    def __enter__(self) -> "CCrawler":  # pragma: no cover - trivial
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - trivial
        self.close()

