"""Certificate and active key name endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Query, Request, Response
from fastapi.responses import PlainTextResponse

from keygate.core.exception_handlers import INTERNAL_ERROR_BODY
from keygate.core.request_io import call_backend
from keygate.utils.pem import encode_certificates_pem

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Certificates"])

PEM_MEDIA_TYPE = "application/x-pem-file"
TEXT_MEDIA_TYPE = "text/plain;charset=utf-8"


def _internal_error() -> PlainTextResponse:
    return PlainTextResponse(INTERNAL_ERROR_BODY, status_code=500, media_type=TEXT_MEDIA_TYPE)


@router.get("/cert.pem")
async def get_certificates(
    request: Request,
    keyname: str = Query("", description="Key name; empty selects the active key"),
) -> Response:
    """Return the PEM-encoded certificate chain of a key.

    An empty or missing ``keyname`` resolves to the backend's active key name
    within this request. Any lookup failure is a 500.
    """
    state = request.app.state
    operation = "lookup_certificates"

    try:
        if not keyname:
            operation = "active_key_name"
            keyname = await call_backend(
                operation,
                state.backend.active_key_name,
                timeout_seconds=state.write_timeout_seconds,
            )
            operation = "lookup_certificates"
        certificates = await call_backend(
            operation,
            state.backend.lookup_certificates,
            keyname,
            timeout_seconds=state.write_timeout_seconds,
        )
        body = encode_certificates_pem(certificates)
    except Exception as exc:
        logger.error(
            "cert.lookup_failed",
            extra={
                "operation": operation,
                "keyname": keyname,
                "error_type": type(exc).__name__,
                "error_msg": str(exc),
            },
        )
        return _internal_error()

    return Response(content=body, media_type=PEM_MEDIA_TYPE)


@router.get("/keyname")
async def get_active_key_name(request: Request) -> Response:
    """Return the active key name as plain text."""
    state = request.app.state

    try:
        keyname = await call_backend(
            "active_key_name",
            state.backend.active_key_name,
            timeout_seconds=state.write_timeout_seconds,
        )
    except Exception as exc:
        logger.error(
            "keyname.lookup_failed",
            extra={
                "operation": "active_key_name",
                "error_type": type(exc).__name__,
                "error_msg": str(exc),
            },
        )
        return _internal_error()

    return PlainTextResponse(keyname, media_type=TEXT_MEDIA_TYPE)
