"""In-memory bucket store with LRU eviction.

Holds one theoretical arrival time per rate limit key. Thread-safe: every
operation runs under a single lock, which gives the limiter atomic
create-or-fetch-then-update semantics per key.

Per-process only; running multiple workers multiplies the effective quota.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable

from keygate.adapters.rate_limit.base import AbstractBucketStore

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    value: int
    expires_at_ns: int


class MemoryBucketStore(AbstractBucketStore):
    """Bounded key/value store for rate limit buckets.

    When the store is full, inserting a new key evicts the least recently
    used one. An evicted key starts over with a full quota on its next request.

    Attributes:
        max_keys: Maximum number of tracked keys.
    """

    def __init__(
        self,
        max_keys: int = 65536,
        *,
        clock: Callable[[], int] = time.monotonic_ns,
    ) -> None:
        if max_keys < 1:
            raise ValueError("max_keys must be >= 1")

        self._max_keys = max_keys
        self._clock = clock
        self._store: OrderedDict[str, _Entry] = OrderedDict()
        self._lock = threading.Lock()
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"MemoryBucketStore(max_keys={self._max_keys}, size={len(self._store)}, "
            f"evictions={self._evictions})"
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    @property
    def max_keys(self) -> int:
        return self._max_keys

    def get_with_time(self, key: str) -> tuple[int | None, int]:
        with self._lock:
            now = self._clock()
            entry = self._store.get(key)
            if entry is None:
                return None, now
            if entry.expires_at_ns <= now:
                del self._store[key]
                return None, now
            self._store.move_to_end(key)
            return entry.value, now

    def set_if_not_exists(self, key: str, value: int, ttl_ns: int) -> bool:
        with self._lock:
            now = self._clock()
            entry = self._store.get(key)
            if entry is not None and entry.expires_at_ns > now:
                self._store.move_to_end(key)
                return False
            self._store[key] = _Entry(value=value, expires_at_ns=now + ttl_ns)
            self._store.move_to_end(key)
            self._evict_if_over_capacity_locked()
            return True

    def compare_and_swap(self, key: str, old: int, new: int, ttl_ns: int) -> bool:
        with self._lock:
            now = self._clock()
            entry = self._store.get(key)
            if entry is None or entry.expires_at_ns <= now or entry.value != old:
                return False
            entry.value = new
            entry.expires_at_ns = now + ttl_ns
            self._store.move_to_end(key)
            return True

    def stats(self) -> dict[str, int]:
        """Return store size metrics without exposing keys."""

        with self._lock:
            return {
                "max_keys": self._max_keys,
                "entries": len(self._store),
                "evictions": self._evictions,
            }

    def _evict_if_over_capacity_locked(self) -> None:
        while len(self._store) > self._max_keys:
            # popitem(last=False) removes the least recently used entry
            self._store.popitem(last=False)
            self._evictions += 1
            logger.debug("bucket_store.evicted", extra={"size": len(self._store)})
