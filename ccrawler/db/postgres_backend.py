"""PostgreSQL backend strategy."""

from __future__ import annotations

from ccrawler.db.relational_backend import RelationalBackend


class PostgresBackend(RelationalBackend):
    """Concrete relational backend for PostgreSQL engines."""

    def __init__(self, url: str, *, connect_timeout: int = 10) -> None:
        super().__init__(url, connect_args={"connect_timeout": connect_timeout})


__all__ = ["PostgresBackend"]
