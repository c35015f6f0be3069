"""Cache metrics dataclass."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    remote_fetches: int = 0
    remote_failures: int = 0
    last_fetch_ts: float | None = None
