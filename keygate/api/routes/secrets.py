"""Secret verification and rotation endpoints.

Both endpoints pass the request body to the key backend unmodified. Backend
errors are logged and answered with a bare status code; error text is never
returned to the caller.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response

from keygate.adapters.rate_limit import RateLimitResult
from keygate.core.config import settings
from keygate.core.errors import ValidationAppError
from keygate.core.rate_limit import enforce_rate_limit
from keygate.core.request_io import call_backend, read_body_limited

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Secrets"])


def _with_rate_limit_headers(response: Response, result: RateLimitResult | None) -> Response:
    if result is not None and settings.rate_limit.include_headers:
        response.headers.update(result.headers())
    return response


def _log_backend_failure(event: str, operation: str, exc: Exception) -> None:
    logger.error(
        event,
        extra={
            "operation": operation,
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
        },
    )


@router.post("/verify")
async def verify_secret(
    request: Request,
    rate_limit: Annotated[RateLimitResult | None, Depends(enforce_rate_limit)],
) -> Response:
    """Check a secret against the key backend.

    Returns:
        200 if the secret is valid, 409 Conflict if it is not.
        400 if the body cannot be read, 500 if the backend check fails.
    """
    state = request.app.state

    try:
        payload = await read_body_limited(request, state.read_timeout_seconds)
    except ValidationAppError as exc:
        logger.warning("verify.body_unreadable", extra={"error_code": exc.code})
        return _with_rate_limit_headers(Response(status_code=400), rate_limit)

    try:
        valid = await call_backend(
            "check_secret",
            state.backend.check_secret,
            payload,
            timeout_seconds=state.write_timeout_seconds,
        )
    except Exception as exc:
        _log_backend_failure("verify.backend_failed", "check_secret", exc)
        return _with_rate_limit_headers(Response(status_code=500), rate_limit)

    status_code = 200 if valid else 409
    return _with_rate_limit_headers(Response(status_code=status_code), rate_limit)


@router.post("/rotate")
async def rotate_secret(request: Request) -> Response:
    """Exchange a secret for a new one.

    The backend's new secret is the response body, declared as JSON. The
    service does not inspect or re-encode it.
    """
    state = request.app.state

    try:
        payload = await read_body_limited(request, state.read_timeout_seconds)
    except ValidationAppError as exc:
        logger.warning("rotate.body_unreadable", extra={"error_code": exc.code})
        return Response(status_code=400)

    try:
        new_secret = await call_backend(
            "rotate_secret",
            state.backend.rotate_secret,
            payload,
            timeout_seconds=state.write_timeout_seconds,
        )
    except Exception as exc:
        _log_backend_failure("rotate.backend_failed", "rotate_secret", exc)
        return Response(status_code=500)

    return Response(content=bytes(new_secret), status_code=200, media_type="application/json")
