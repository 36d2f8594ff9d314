"""Fallback exception handlers for the public listener.

Routes turn backend outcomes into status codes themselves. Anything that
escapes a route (a rate limit store failure, an unexpected bug) lands here
and is answered with a fixed plain-text body; the detail only goes to the
log.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from keygate.core.errors import AppError, ValidationAppError

logger = logging.getLogger(__name__)

INTERNAL_ERROR_BODY = "Internal error\n"
BAD_REQUEST_BODY = "Bad request\n"


async def app_error_handler(request: Request, exc: AppError) -> PlainTextResponse:
    """400 for validation errors, 500 for every other ``AppError``."""
    if isinstance(exc, ValidationAppError):
        status_code, body = 400, BAD_REQUEST_BODY
    else:
        status_code, body = 500, INTERNAL_ERROR_BODY

    logger.warning(
        "request.app_error",
        extra={
            "error_code": exc.code,
            "error_msg": exc.message,
            "error_details": exc.details,
            "status_code": status_code,
            "path": request.url.path,
        },
    )
    return PlainTextResponse(body, status_code=status_code)


async def general_exception_handler(request: Request, exc: Exception) -> PlainTextResponse:
    logger.error(
        "request.unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "path": request.url.path,
            "method": request.method,
        },
    )
    return PlainTextResponse(INTERNAL_ERROR_BODY, status_code=500)


def setup_exception_handlers(app: FastAPI) -> None:
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
