"""Allow ``python -m ccrawler``."""

from __future__ import annotations

from ccrawler.crawl import main

if __name__ == "__main__":  # pragma: no cover - thin wrapper
    raise SystemExit(main())
