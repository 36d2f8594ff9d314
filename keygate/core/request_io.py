"""Bounded request reading and backend invocation.

The public listener enforces two timeouts:
- read timeout: upper bound for receiving the request body
- write timeout: upper bound for the backend call that produces the response

Backend capabilities are synchronous, so they run in worker threads. A
timed-out call is abandoned, not cancelled; the thread finishes on its own.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, TypeVar

from fastapi import Request
from starlette.requests import ClientDisconnect

from keygate.core.errors import BackendAppError, ValidationAppError

T = TypeVar("T")


async def read_body_limited(request: Request, timeout_seconds: float) -> bytes:
    """Read the full request body within ``timeout_seconds``.

    Raises:
        ValidationAppError: If the body cannot be read (client disconnect or
            read timeout).
    """

    try:
        return await asyncio.wait_for(request.body(), timeout=timeout_seconds)
    except asyncio.TimeoutError as exc:
        raise ValidationAppError(
            code="body_read_timeout",
            message=f"request body not received within {timeout_seconds}s",
        ) from exc
    except ClientDisconnect as exc:
        raise ValidationAppError(
            code="body_unreadable",
            message="client disconnected while sending the request body",
        ) from exc


async def call_backend(
    operation: str,
    func: Callable[..., T],
    *args: Any,
    timeout_seconds: float,
) -> T:
    """Run a synchronous backend capability with an upper time bound.

    Args:
        operation: Name of the capability, used in errors and logs.
        func: Capability to call.
        *args: Positional arguments for ``func``.
        timeout_seconds: Write timeout of the listener.

    Raises:
        BackendAppError: If the call does not return in time.
        Exception: Whatever the capability raises, unchanged.
    """

    try:
        return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=timeout_seconds)
    except asyncio.TimeoutError as exc:
        raise BackendAppError(
            code="backend_timeout",
            message=f"{operation} did not return within {timeout_seconds}s",
            details={"operation": operation},
        ) from exc
