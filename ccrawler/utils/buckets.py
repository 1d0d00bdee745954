"""Helpers for the minute buckets that key every crawl."""

from __future__ import annotations

from datetime import datetime, timezone

BUCKET_FORMAT = "%Y%m%d%H%M"


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""

    return datetime.now(timezone.utc)


def minute_bucket(moment: datetime) -> str:
    """Truncate ``moment`` to the minute and render it as ``YYYYMMDDHHMM``.

    Aware datetimes are converted to UTC first so that crawlers running in
    different time zones produce the same bucket for the same instant.
    """

    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime(BUCKET_FORMAT)


def bucket_id(bucket: str, symbol: str) -> str:
    """Build the primary key of an exchange rate row."""

    return f"{bucket}_{symbol}"


def parse_bucket(bucket: str | int) -> datetime:
    """Inverse of :func:`minute_bucket`; returns an aware UTC datetime."""

    return datetime.strptime(str(bucket), BUCKET_FORMAT).replace(tzinfo=timezone.utc)


__all__ = ["BUCKET_FORMAT", "bucket_id", "minute_bucket", "parse_bucket", "utcnow"]
