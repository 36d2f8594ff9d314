"""Rate limiting dependency for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Explicit ownership: the limiter lives on ``app.state`` and is injected when
  the app is built, so tests can substitute a deterministic limiter.
- Swap-friendly: routes depend on ``AbstractRateLimiter`` only.

Key strategy:
- The key varies by request path and the configured headers
  (``X-Forwarded-For`` by default), not by the socket peer address.
"""

from __future__ import annotations

import logging
from typing import Iterable

from fastapi import HTTPException, Request, status

from keygate.adapters.rate_limit import AbstractRateLimiter, GCRARateLimiter, MemoryBucketStore, RateLimitResult
from keygate.core.config import RateLimitSettings, settings
from keygate.core.logging import hash_identifier

logger = logging.getLogger(__name__)


def build_rate_limiter(rate_limit_settings: RateLimitSettings | None = None) -> AbstractRateLimiter:
    """Build the GCRA limiter described by configuration.

    Raises:
        ValueError: If the configured quota is invalid. Callers treat this as
            a fatal startup error.
    """

    cfg = rate_limit_settings or settings.rate_limit
    store = MemoryBucketStore(max_keys=cfg.max_keys)
    return GCRARateLimiter(store, rate_per_second=cfg.rate_per_second, burst=cfg.burst)


def build_rate_limit_key(
    request: Request,
    *,
    vary_by_path: bool = True,
    header_names: Iterable[str] = ("X-Forwarded-For",),
) -> str:
    """Derive the rate limit key for a request.

    Identical path and header values always produce the same key, so repeated
    requests from one logical client share a bucket.
    """

    parts: list[str] = []
    if vary_by_path:
        parts.append(request.url.path)
    for name in header_names:
        parts.append(request.headers.get(name, ""))
    return "rl:" + "\n".join(parts)


def get_rate_limiter(request: Request) -> AbstractRateLimiter | None:
    return getattr(request.app.state, "rate_limiter", None)


async def enforce_rate_limit(request: Request) -> RateLimitResult | None:
    """FastAPI dependency enforcing the limiter attached to the app.

    Returns:
        The admission result (routes copy its informational headers onto the
        response), or None when rate limiting is disabled.

    Raises:
        HTTPException: 429 Too Many Requests when the key is over quota.
    """

    limiter = get_rate_limiter(request)
    if limiter is None:
        return None

    cfg = settings.rate_limit
    key = build_rate_limit_key(
        request,
        vary_by_path=cfg.vary_by_path,
        header_names=cfg.header_names,
    )

    result = limiter.consume(key)
    if result.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "key_hash": hash_identifier(key),
                "path": request.url.path,
                "remaining": result.remaining,
            },
        )
        return result

    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_hash": hash_identifier(key),
            "path": request.url.path,
            "limit": result.limit,
            "retry_after_s": result.retry_after_seconds,
        },
    )

    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="limit exceeded",
        headers=result.headers() if cfg.include_headers else None,
    )
