"""Generic Cell Rate Algorithm (GCRA) rate limiter.

Each key stores a theoretical arrival time (TAT). With emission interval
``T = 1 / rate`` and tolerance ``tau = burst * T``, a request arriving at
``now`` is admitted when ``now >= max(TAT, now) + T - tau``; the TAT then
advances by ``T``. A fresh key can therefore issue ``burst`` requests back to
back, after which it is held to the steady-state rate. Rejected requests do
not touch the stored state.

Times are integer nanoseconds taken from the store's clock.
"""

from __future__ import annotations

import logging

from keygate.adapters.rate_limit.base import (
    AbstractBucketStore,
    AbstractRateLimiter,
    RateLimitResult,
)
from keygate.core.errors import RateLimitStoreError

logger = logging.getLogger(__name__)

NANOSECONDS = 1_000_000_000

# Bounded retries when another worker updates the same key concurrently
MAX_CAS_ATTEMPTS = 10


class GCRARateLimiter(AbstractRateLimiter):
    """GCRA limiter over a bucket store.

    Args:
        store: Bucket store holding the TAT per key.
        rate_per_second: Steady-state admissions per second.
        burst: Requests a fresh key may issue immediately.

    Raises:
        ValueError: If the quota is invalid.
    """

    def __init__(
        self,
        store: AbstractBucketStore,
        *,
        rate_per_second: float,
        burst: int,
    ) -> None:
        if rate_per_second < 1:
            raise ValueError("rate_per_second must be >= 1")
        if burst < 1:
            raise ValueError("burst must be >= 1")

        self._store = store
        self._burst = burst
        self._emission_interval = int(round(NANOSECONDS / rate_per_second))
        if self._emission_interval < 1:
            raise ValueError("rate_per_second is too high")
        self._tolerance = self._emission_interval * burst

    @property
    def burst(self) -> int:
        return self._burst

    @property
    def emission_interval_seconds(self) -> float:
        return self._emission_interval / NANOSECONDS

    def consume(self, key: str) -> RateLimitResult:
        """Admit or reject one request for ``key``.

        Raises:
            ValueError: If key is empty.
            RateLimitStoreError: If the decision could not be stored because
                of sustained contention on the same key.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        for attempt in range(1, MAX_CAS_ATTEMPTS + 1):
            stored_tat, now = self._store.get_with_time(key)
            tat = now if stored_tat is None else stored_tat

            new_tat = max(tat, now) + self._emission_interval
            allow_at = new_tat - self._tolerance

            if now < allow_at:
                return RateLimitResult(
                    allowed=False,
                    limit=self._burst,
                    remaining=0,
                    reset_after_seconds=max(0, tat - now) / NANOSECONDS,
                    retry_after_seconds=(allow_at - now) / NANOSECONDS,
                )

            ttl = new_tat - now
            if stored_tat is None:
                updated = self._store.set_if_not_exists(key, new_tat, ttl)
            else:
                updated = self._store.compare_and_swap(key, stored_tat, new_tat, ttl)

            if updated:
                return RateLimitResult(
                    allowed=True,
                    limit=self._burst,
                    remaining=max(0, (self._tolerance - ttl) // self._emission_interval),
                    reset_after_seconds=ttl / NANOSECONDS,
                )

            logger.debug("rate_limit.cas_retry", extra={"attempt": attempt})

        raise RateLimitStoreError(
            code="rate_limit_store_contention",
            message="failed to store updated rate limit state",
            details={"attempts": MAX_CAS_ATTEMPTS},
        )
