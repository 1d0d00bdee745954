"""Runtime settings sourced from ``CCRAWLER_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Callable, Mapping

from sqlalchemy.engine import URL, make_url

from ccrawler.errors import ConfigurationError
from ccrawler.ingestion.coincap import COINCAP_FRONT_URL

ENV_PREFIX = "CCRAWLER_"

_TRUE_VALUES = {"1", "true", "t", "yes", "y", "on"}
_FALSE_VALUES = {"0", "false", "f", "no", "n", "off", ""}


def _to_int(name: str, raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _to_float(name: str, raw: str) -> float:
    try:
        return float(raw.strip())
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def _to_bool(name: str, raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


def _to_str(name: str, raw: str) -> str:
    return raw


def _to_optional_str(name: str, raw: str) -> str | None:
    return raw or None


@dataclass(slots=True)
class CrawlerSettings:
    """Everything the crawler needs before it can start scheduling."""

    db_host: str = field(default="localhost", metadata={"env": "DBHOST"})
    db_port: int = field(default=5432, metadata={"env": "DBPORT"})
    db_user: str = field(default="postgres", metadata={"env": "DBUSER"})
    db_password: str = field(default="postgres", metadata={"env": "DBPASSWORD"})
    db_name: str = field(default="public", metadata={"env": "DBNAME"})
    db_sslmode: str = field(default="disable", metadata={"env": "DBSSLMODE"})
    db_connection_retries: int = field(default=5, metadata={"env": "DBCONNECTIONRETRIES"})
    db_connection_backoff: float = field(default=3.0, metadata={"env": "DBCONNECTIONBACKOFF"})
    db_url: str | None = field(default=None, metadata={"env": "DBURL"})
    interval: int = field(default=30, metadata={"env": "INTERVAL"})
    source_url: str = field(default=COINCAP_FRONT_URL, metadata={"env": "SOURCEURL"})
    fetch_timeout: float = field(default=10.0, metadata={"env": "FETCHTIMEOUT"})
    max_instances: int = field(default=1, metadata={"env": "MAXINSTANCES"})
    version: bool = field(default=False, metadata={"env": "VERSION"})

    def __post_init__(self) -> None:
        if self.db_connection_retries < 1:
            raise ConfigurationError("db_connection_retries must be at least 1")
        if self.db_connection_backoff < 0:
            raise ConfigurationError("db_connection_backoff must not be negative")
        if self.fetch_timeout <= 0:
            raise ConfigurationError("fetch_timeout must be positive")
        if self.max_instances < 1:
            raise ConfigurationError("max_instances must be at least 1")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "CrawlerSettings":
        """Build settings from ``CCRAWLER_*`` variables, falling back to defaults."""

        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for item in fields(cls):
            name = ENV_PREFIX + item.metadata["env"]
            if name not in env:
                continue
            values[item.name] = _CONVERTERS[item.name](name, env[name])
        return cls(**values)

    def override(self, **changes: Any) -> "CrawlerSettings":
        """Return a copy with every non-``None`` entry of ``changes`` applied."""

        return replace(self, **{key: value for key, value in changes.items() if value is not None})

    @property
    def run_once(self) -> bool:
        return self.interval <= 0

    def database_url(self) -> URL:
        """Return the SQLAlchemy URL the crawler should connect to."""

        if self.db_url:
            return make_url(self.db_url)
        return URL.create(
            "postgresql+psycopg2",
            username=self.db_user,
            password=self.db_password,
            host=self.db_host,
            port=self.db_port,
            database=self.db_name,
            query={"sslmode": self.db_sslmode},
        )

    def describe(self) -> list[str]:
        """Lines summarising the effective configuration, password masked."""

        if self.db_url:
            target = make_url(self.db_url).render_as_string(hide_password=True)
            database_lines = [f" - URL: {target}"]
        else:
            database_lines = [
                f" - Host: {self.db_host}",
                f" - Port: {self.db_port}",
                f" - User: {self.db_user}",
                f" - Password: {'***' if self.db_password else ''}",
                f" - DBName: {self.db_name}",
                f" - SSLMode: {self.db_sslmode}",
            ]
        return [
            "Used Config Values:",
            *database_lines,
            f" - Retries: {self.db_connection_retries}",
            f" - Backoff: {self.db_connection_backoff}s",
            f" - Interval: {self.interval}s" if not self.run_once else " - Interval: once",
            f" - Source: {self.source_url}",
        ]


_CONVERTERS: dict[str, Callable[[str, str], Any]] = {
    "db_host": _to_str,
    "db_port": _to_int,
    "db_user": _to_str,
    "db_password": _to_str,
    "db_name": _to_str,
    "db_sslmode": _to_str,
    "db_connection_retries": _to_int,
    "db_connection_backoff": _to_float,
    "db_url": _to_optional_str,
    "interval": _to_int,
    "source_url": _to_str,
    "fetch_timeout": _to_float,
    "max_instances": _to_int,
    "version": _to_bool,
}


__all__ = ["CrawlerSettings", "ENV_PREFIX"]
