from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

router = APIRouter(tags=["Health"])


@router.get("/healthz", response_class=PlainTextResponse)
def health_check() -> PlainTextResponse:
    """Liveness check.

    Always answers 200 with ``ok\\n``; it never touches the key backend, so
    load balancers keep routing even while the backend is failing.
    """

    return PlainTextResponse("ok\n", media_type="text/plain; charset=utf-8")
