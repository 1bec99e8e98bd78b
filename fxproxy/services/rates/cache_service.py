from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Hashable, Optional, TypeVar

from fxproxy.models.constants import RATES_TTL_SECONDS

"""Server-side rates cache with passive TTL and a stale read channel.

Design:
    - One entry per key, replaced wholesale by set().
    - get_fresh() hits only while now < expires_at.
    - Expiry never deletes anything: get_stale() keeps returning the last write
      so the caller can serve degraded data when the upstream feed is down.
    - No background eviction; expired entries live until overwritten or cleared.

Owned by one RatesService instance (constructed in create_app), never a module
level singleton, so tests build isolated caches with a fake clock.
"""

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(frozen=True)
class _CacheEntry(Generic[V]):
    value: V
    cached_at: float
    expires_at: float


class TtlCache(Generic[K, V]):
    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._storage: Dict[K, _CacheEntry[V]] = {}

    def set(self, key: K, value: V, ttl_seconds: float = RATES_TTL_SECONDS) -> None:
        now = self._clock()
        self._storage[key] = _CacheEntry(
            value=value, cached_at=now, expires_at=now + ttl_seconds
        )

    def get_fresh(self, key: K) -> Optional[V]:
        entry = self._storage.get(key)
        if entry is None:
            return None
        return entry.value if self._clock() < entry.expires_at else None

    def get_stale(self, key: K) -> Optional[V]:
        entry = self._storage.get(key)
        return entry.value if entry is not None else None

    def is_fresh(self, key: K) -> bool:
        entry = self._storage.get(key)
        if entry is None:
            return False
        return self._clock() < entry.expires_at

    def cached_at(self, key: K) -> Optional[float]:
        entry = self._storage.get(key)
        return entry.cached_at if entry is not None else None

    def clear(self, key: Optional[K] = None) -> None:
        if key is None:
            self._storage.clear()
            return
        self._storage.pop(key, None)

    def __len__(self) -> int:
        return len(self._storage)
