"""Pipeline and CLI tests; the quote source is always monkeypatched."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from sqlalchemy import create_engine, text

from ccrawler.crawl import PipelineContext, crawl_exchange_rates, main, parse_args
from ccrawler.db.base_backend import BackendStrategy, PersistenceResult
from ccrawler.db.relational_backend import RelationalBackend
from ccrawler.errors import FetchError, PersistError
from ccrawler.ingestion.models import ExchangeRateRow, QuoteRecord

FIXED_START = datetime(2024, 1, 2, 3, 4, 59, tzinfo=timezone.utc)


class _RecordingBackend(BackendStrategy):
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.batches: list[tuple[list[QuoteRecord], str]] = []

    def connect(self) -> None:
        return None

    def ensure_schema(self) -> None:
        return None

    def insert_rates(self, rows: Sequence[QuoteRecord], bucket: str) -> PersistenceResult:
        self.batches.append((list(rows), bucket))
        if self.fail:
            raise PersistError("duplicate key value violates unique constraint", elapsed=0.5)
        return PersistenceResult(inserted=len(rows), elapsed=0.25)

    def fetch_by_id(self, row_id: str) -> ExchangeRateRow | None:
        return None

    def fetch_bucket(self, bucket: str | int) -> list[ExchangeRateRow]:
        return []


def _quotes() -> list[QuoteRecord]:
    return [
        QuoteRecord(symbol="ZEC", name="Zcash", price=30.0),
        QuoteRecord(symbol="BTC", name="Bitcoin", price=64000.0),
        QuoteRecord(symbol="ETH", name="Ethereum", price=3000.0),
    ]


def _clock_sequence(*moments: datetime):
    iterator = iter(moments)
    return lambda: next(iterator)


def test_crawl_persists_ordered_batch_with_single_bucket(monkeypatch) -> None:
    monkeypatch.setattr("ccrawler.crawl.fetch_snapshot", lambda *args, **kwargs: _quotes())
    backend = _RecordingBackend()
    context = PipelineContext(backend=backend, clock=lambda: FIXED_START)

    report = crawl_exchange_rates(context)

    assert report.ok
    assert report.bucket == "202401020304"
    assert report.fetched == 3
    assert report.inserted == 3
    assert report.persist_elapsed == 0.25
    rows, bucket = backend.batches[0]
    assert bucket == "202401020304"
    assert [row.symbol for row in rows] == ["BTC", "ETH", "ZEC"]


def test_crawl_reads_the_clock_once_before_fetching(monkeypatch) -> None:
    calls: list[str] = []

    def _clock() -> datetime:
        calls.append("clock")
        return FIXED_START

    def _fetch(*args, **kwargs) -> list[QuoteRecord]:
        calls.append("fetch")
        return _quotes()

    monkeypatch.setattr("ccrawler.crawl.fetch_snapshot", _fetch)

    crawl_exchange_rates(PipelineContext(backend=_RecordingBackend(), clock=_clock))

    assert calls == ["clock", "fetch"]


def test_crawl_forwards_source_settings_to_fetcher(monkeypatch) -> None:
    seen: dict[str, object] = {}
    session = object()

    def _fetch(url, *, session, timeout):
        seen.update(url=url, session=session, timeout=timeout)
        return []

    monkeypatch.setattr("ccrawler.crawl.fetch_snapshot", _fetch)
    context = PipelineContext(
        backend=_RecordingBackend(),
        source_url="http://example.test/front",
        session=session,  # type: ignore[arg-type]
        timeout=4.0,
        clock=lambda: FIXED_START,
    )

    crawl_exchange_rates(context)

    assert seen == {"url": "http://example.test/front", "session": session, "timeout": 4.0}


def test_fetch_failure_skips_persistence(monkeypatch) -> None:
    def _broken(*args, **kwargs):
        raise FetchError("connection reset")

    monkeypatch.setattr("ccrawler.crawl.fetch_snapshot", _broken)
    backend = _RecordingBackend()

    report = crawl_exchange_rates(PipelineContext(backend=backend, clock=lambda: FIXED_START))

    assert not report.ok
    assert isinstance(report.error, FetchError)
    assert backend.batches == []


def test_next_crawl_runs_after_a_failed_fetch(monkeypatch) -> None:
    outcomes = iter([FetchError("timeout"), _quotes()])

    def _fetch(*args, **kwargs):
        outcome = next(outcomes)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr("ccrawler.crawl.fetch_snapshot", _fetch)
    backend = _RecordingBackend()
    context = PipelineContext(
        backend=backend,
        clock=_clock_sequence(FIXED_START, datetime(2024, 1, 2, 3, 5, 29, tzinfo=timezone.utc)),
    )

    first = crawl_exchange_rates(context)
    second = crawl_exchange_rates(context)

    assert not first.ok
    assert second.ok
    assert [bucket for _, bucket in backend.batches] == ["202401020305"]


def test_persist_failure_is_reported_not_raised(monkeypatch) -> None:
    monkeypatch.setattr("ccrawler.crawl.fetch_snapshot", lambda *args, **kwargs: _quotes())
    backend = _RecordingBackend(fail=True)

    report = crawl_exchange_rates(PipelineContext(backend=backend, clock=lambda: FIXED_START))

    assert isinstance(report.error, PersistError)
    assert report.inserted == 0
    assert report.persist_elapsed == 0.5


def test_empty_snapshot_is_a_successful_noop(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr("ccrawler.crawl.fetch_snapshot", lambda *args, **kwargs: [])
    backend = RelationalBackend(f"sqlite:///{tmp_path / 'empty.db'}")
    backend.connect()
    backend.ensure_schema()
    try:
        report = crawl_exchange_rates(PipelineContext(backend=backend, clock=lambda: FIXED_START))
        assert report.ok
        assert report.inserted == 0
        assert backend.fetch_bucket(report.bucket) == []
    finally:
        backend.close()


def test_same_minute_crawls_collide(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr("ccrawler.crawl.fetch_snapshot", lambda *args, **kwargs: _quotes())
    backend = RelationalBackend(f"sqlite:///{tmp_path / 'collide.db'}")
    backend.connect()
    backend.ensure_schema()
    try:
        context = PipelineContext(
            backend=backend,
            clock=_clock_sequence(
                datetime(2024, 1, 2, 3, 4, 1, tzinfo=timezone.utc),
                datetime(2024, 1, 2, 3, 4, 31, tzinfo=timezone.utc),
            ),
        )
        first = crawl_exchange_rates(context)
        second = crawl_exchange_rates(context)

        assert first.inserted == 3
        assert isinstance(second.error, PersistError)
        assert len(backend.fetch_bucket("202401020304")) == 3
    finally:
        backend.close()


def test_parse_args_defaults() -> None:
    args = parse_args([])

    assert args.db_url is None
    assert args.interval is None
    assert args.once is False
    assert args.version is None


def test_parse_args_overrides() -> None:
    args = parse_args(["--db-url", "sqlite://", "--interval", "60", "--retries", "2", "--backoff", "0.5"])

    assert args.db_url == "sqlite://"
    assert args.interval == 60
    assert args.db_connection_retries == 2
    assert args.db_connection_backoff == 0.5


def test_main_version_flag(capsys) -> None:
    assert main(["--version"]) == 0

    assert capsys.readouterr().out.startswith("ccrawler ")


def test_main_once_persists_rows(monkeypatch, tmp_path: Path) -> None:
    db_path = tmp_path / "cli.db"
    monkeypatch.setattr("ccrawler.crawl.fetch_snapshot", lambda *args, **kwargs: _quotes())

    assert main(["--db-url", f"sqlite:///{db_path}", "--once"]) == 0

    engine = create_engine(f"sqlite:///{db_path}")
    try:
        with engine.connect() as connection:
            symbols = connection.execute(
                text("SELECT symbol FROM exchange_rates ORDER BY symbol")
            ).scalars().all()
    finally:
        engine.dispose()
    assert symbols == ["BTC", "ETH", "ZEC"]


def test_main_exits_non_zero_when_connection_fails(tmp_path: Path) -> None:
    url = f"sqlite:///{tmp_path / 'missing' / 'cli.db'}"

    assert main(["--db-url", url, "--once", "--retries", "2", "--backoff", "0"]) == 1


def test_main_rejects_invalid_environment(monkeypatch) -> None:
    monkeypatch.setenv("CCRAWLER_DBPORT", "not-a-port")

    assert main(["--once"]) == 2
