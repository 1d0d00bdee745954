"""Exception hierarchy shared by the crawler components."""

from __future__ import annotations


class CrawlerError(RuntimeError):
    """Base class for every error raised by ccrawler."""


class ConfigurationError(CrawlerError, ValueError):
    """Raised when a ``CCRAWLER_*`` setting cannot be interpreted."""


class FetchError(CrawlerError):
    """The quote snapshot could not be retrieved or decoded."""


class DatabaseConnectionError(CrawlerError):
    """Connecting to the database failed on every attempt."""

    def __init__(self, message: str, *, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts


class SchemaError(CrawlerError):
    """The ``exchange_rates`` table could not be created."""


class PersistError(CrawlerError):
    """A batch insert was rejected by the database."""

    def __init__(self, message: str, *, elapsed: float = 0.0) -> None:
        super().__init__(message)
        self.elapsed = elapsed


__all__ = [
    "CrawlerError",
    "ConfigurationError",
    "DatabaseConnectionError",
    "FetchError",
    "PersistError",
    "SchemaError",
]
