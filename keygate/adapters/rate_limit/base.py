"""Rate limiter and bucket store interfaces.

The HTTP layer depends on ``AbstractRateLimiter`` only, so tests can inject a
deterministic limiter and the store can later move to a shared backend.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass


def _whole_seconds(seconds: float) -> int:
    return max(0, int(math.ceil(seconds)))


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of an admission decision.

    Attributes:
        allowed: Whether the request is admitted.
        limit: Maximum burst for the key.
        remaining: Requests that could still be admitted right now.
        reset_after_seconds: Time until the bucket is back to full quota.
        retry_after_seconds: Time until the next request would be admitted
            (only set when blocked).
    """

    allowed: bool
    limit: int
    remaining: int
    reset_after_seconds: float
    retry_after_seconds: float | None = None

    def headers(self) -> dict[str, str]:
        """Render the standard rate limit response headers."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(_whole_seconds(self.reset_after_seconds)),
        }
        if not self.allowed and self.retry_after_seconds is not None:
            headers["Retry-After"] = str(max(1, _whole_seconds(self.retry_after_seconds)))
        return headers


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def consume(self, key: str) -> RateLimitResult:
        """Decide whether one request for ``key`` is admitted.

        Args:
            key: Rate limit key (path plus client identifying headers).

        Returns:
            RateLimitResult describing the decision.
        """
        raise NotImplementedError


class AbstractBucketStore(ABC):
    """Storage for per-key integer state with atomic conditional updates."""

    @abstractmethod
    def get_with_time(self, key: str) -> tuple[int | None, int]:
        """Return ``(value or None, now_ns)`` read under the same clock."""
        raise NotImplementedError

    @abstractmethod
    def set_if_not_exists(self, key: str, value: int, ttl_ns: int) -> bool:
        """Store ``value`` only if ``key`` is absent. Returns True if stored."""
        raise NotImplementedError

    @abstractmethod
    def compare_and_swap(self, key: str, old: int, new: int, ttl_ns: int) -> bool:
        """Replace ``old`` with ``new`` only if the stored value is still ``old``."""
        raise NotImplementedError
