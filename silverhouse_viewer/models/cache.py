"""Cache-related dataclasses."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class CacheState(Enum):
    EMPTY = "empty"
    FRESH = "fresh"
    STALE = "stale"


@dataclass(frozen=True)
class CachedResource(Generic[T]):
    """A cached value with the monotonic time it was stored at.

    Frozen: a refresh replaces the whole entry instead of mutating it.
    """

    key: str
    value: T
    fetched_at: float
    ttl_s: float

    def age(self, now: float) -> float:
        return now - self.fetched_at

    def is_fresh(self, now: float) -> bool:
        return self.age(now) < self.ttl_s
