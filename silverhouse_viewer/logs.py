"""Monthly login-log cache backed by the FTP store."""

from __future__ import annotations

import asyncio
import logging
from datetime import date

from . import view
from .caching import ResourceCache
from .remote import RemoteErrorKind, RemoteStore

logger = logging.getLogger(__name__)

_LOG_CACHE_MAX = 24


def month_key(year: int | str, month: int | str) -> str:
    """Build the zero-padded ``YYYY-MM`` key for a month.

    Raises ValueError for anything that is not a real calendar month.

    Example:
        >>> month_key("2024", 3)
        '2024-03'
    """
    try:
        y = int(str(year).strip())
        m = int(str(month).strip())
    except ValueError:
        raise ValueError(f"Invalid year/month: {year!r}/{month!r}") from None
    if not 1 <= m <= 12 or not 1 <= y <= 9999:
        raise ValueError(f"Invalid year/month: {year!r}/{month!r}")
    return f"{y:04d}-{m:02d}"


def resolve_period(
    year: str | None, month: str | None, today: date | None = None
) -> tuple[int, int]:
    """Fill in a missing year or month from today's date."""
    today = today or date.today()
    key = month_key(year or today.year, month or today.month)
    y, m = key.split("-")
    return int(y), int(m)


class LogStore:
    """Read-through cache for the monthly ``login_log_YYYY-MM.csv`` files.

    A miss blocks on the FTP download. Missing files are not cached so the
    next request retries.
    """

    def __init__(
        self,
        remote: RemoteStore,
        logs_folder: str = "/Logs",
        ttl_s: float = 30.0,
        max_entries: int = _LOG_CACHE_MAX,
    ) -> None:
        self.remote = remote
        self.logs_folder = logs_folder.rstrip("/")
        self.cache: ResourceCache[str] = ResourceCache(ttl_s, max_entries=max_entries)
        self._inflight: dict[str, asyncio.Task] = {}

    def remote_path(self, key: str) -> str:
        return f"{self.logs_folder}/login_log_{key}.csv"

    async def get(self, year: int | str, month: int | str) -> str | None:
        """Return the raw CSV text for a month, or None if there is no file."""
        key = month_key(year, month)
        entry = self.cache.get_fresh(key)
        if entry is not None:
            return entry.value

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._fetch(key))
            self._inflight[key] = task
            task.add_done_callback(lambda _t, k=key: self._inflight.pop(k, None))
        return await asyncio.shield(task)

    async def rows(self, year: int | str, month: int | str) -> list[dict[str, str]]:
        """Parsed CSV rows for a month; an empty list when there is no file."""
        text = await self.get(year, month)
        if not text:
            return []
        return view.parse_csv_rows(text)

    async def _fetch(self, key: str) -> str | None:
        path = self.remote_path(key)
        result = await self.remote.fetch(path)
        self.cache.record_fetch(result.ok)
        if not result.ok:
            if result.error is RemoteErrorKind.NOT_FOUND:
                self.cache.invalidate(key)
            logger.info(
                "No log file for %s at %s (%s)",
                key,
                path,
                result.error.value if result.error else "unknown",
            )
            return None
        self.cache.invalidate_and_set(key, result.text)
        logger.debug("Cached log %s (%d chars)", key, len(result.text or ""))
        return result.text
