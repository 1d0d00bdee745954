"""Connection establishment with fixed-backoff retries."""

from __future__ import annotations

import time
from typing import Callable, TypeVar

from ccrawler.db.base_backend import BackendStrategy
from ccrawler.errors import DatabaseConnectionError, SchemaError
from ccrawler.utils.logger import get_logger

LOGGER = get_logger(__name__)

T = TypeVar("T")
B = TypeVar("B", bound=BackendStrategy)


def retry(
    attempts: int,
    backoff: float,
    callback: Callable[[], T],
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``callback`` until it succeeds, at most ``attempts`` times.

    The delay between two attempts is always ``backoff`` seconds; there is no
    sleep after the final attempt.
    """

    if attempts < 1:
        raise ValueError("attempts must be at least 1")
    last_error: Exception | None = None
    for attempt in range(1, attempts + 1):
        LOGGER.info("Connecting to database (attempt %s/%s)", attempt, attempts)
        try:
            return callback()
        except Exception as exc:
            last_error = exc
            LOGGER.warning("Attempt %s/%s to connect failed: %s", attempt, attempts, exc)
            if attempt < attempts:
                sleep(backoff)
    raise DatabaseConnectionError(
        f"After {attempts} attempts, last error: {last_error}", attempts=attempts
    ) from last_error


def connect_with_retry(
    backend: B,
    *,
    attempts: int,
    backoff: float,
    sleep: Callable[[float], None] = time.sleep,
) -> B:
    """Open ``backend`` or raise :class:`DatabaseConnectionError`."""

    LOGGER.info("Initializing database connection (retries: %s, backoff: %ss)", attempts, backoff)
    try:
        retry(attempts, backoff, backend.connect, sleep=sleep)
    except DatabaseConnectionError:
        LOGGER.error("Initializing database connection unsuccessful")
        raise
    LOGGER.info("Initializing database connection successful")
    return backend


def ensure_schema_best_effort(backend: BackendStrategy) -> bool:
    """Create the table if possible; report but never raise schema failures."""

    try:
        backend.ensure_schema()
    except SchemaError as exc:
        LOGGER.warning("Schema creation skipped: %s", exc)
        return False
    LOGGER.info("Schema creation successful")
    return True


__all__ = ["connect_with_retry", "ensure_schema_best_effort", "retry"]
