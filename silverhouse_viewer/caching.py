"""In-memory TTL cache shared by the log and machine-ID stores."""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from typing import Callable, Generic, TypeVar

from .models.cache import CachedResource, CacheState
from .models.metrics import CacheStats

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResourceCache(Generic[T]):
    """Keyed cache of whole values with a single staleness window.

    The cache decides nothing about where values come from; the stores that
    own an instance do the fetching and call `invalidate_and_set`.
    """

    def __init__(
        self,
        ttl_s: float,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_s = ttl_s
        self.max_entries = max_entries
        self.clock = clock
        self.stats = CacheStats()
        self._entries: OrderedDict[str, CachedResource[T]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def state(self, key: str) -> CacheState:
        entry = self._entries.get(key)
        if entry is None:
            return CacheState.EMPTY
        if entry.is_fresh(self.clock()):
            return CacheState.FRESH
        return CacheState.STALE

    def peek(self, key: str) -> CachedResource[T] | None:
        """Return the entry for `key` regardless of age."""
        return self._entries.get(key)

    def get_fresh(self, key: str) -> CachedResource[T] | None:
        """Return the entry for `key` if it is younger than the TTL.

        Counts a hit or a miss in `stats`.
        """
        entry = self._entries.get(key)
        if entry is not None and entry.is_fresh(self.clock()):
            self.stats.hits += 1
            return entry
        self.stats.misses += 1
        return None

    def invalidate_and_set(self, key: str, value: T) -> CachedResource[T]:
        """Replace the value for `key` and restart its staleness window."""
        entry = CachedResource(
            key=key, value=value, fetched_at=self.clock(), ttl_s=self.ttl_s
        )
        self._entries[key] = entry
        self._entries.move_to_end(key)
        self._prune()
        return entry

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def record_fetch(self, ok: bool) -> None:
        self.stats.remote_fetches += 1
        self.stats.last_fetch_ts = time.time()
        if not ok:
            self.stats.remote_failures += 1

    def _prune(self) -> None:
        if self.max_entries is None:
            return
        while len(self._entries) > self.max_entries:
            key, _ = self._entries.popitem(last=False)
            logger.debug("Evicted cache entry %s", key)
