"""Rate limiting adapters.

The HTTP layer talks to ``AbstractRateLimiter``; the GCRA implementation
keeps its state in a bounded in-memory bucket store that can later be
replaced by a shared store without changing the API layer.
"""

from keygate.adapters.rate_limit.base import (
    AbstractBucketStore,
    AbstractRateLimiter,
    RateLimitResult,
)
from keygate.adapters.rate_limit.gcra import GCRARateLimiter
from keygate.adapters.rate_limit.store import MemoryBucketStore

__all__ = [
    "AbstractBucketStore",
    "AbstractRateLimiter",
    "GCRARateLimiter",
    "MemoryBucketStore",
    "RateLimitResult",
]
