"""Request correlation for both listeners.

A caller-supplied ``X-Request-ID`` (the header name is configurable) is
reused, otherwise one is generated. The id is visible to every log line
written while the request is handled and is echoed on the response along
with ``X-Request-Duration-ms``.
"""

from __future__ import annotations

import time
import uuid
from typing import Awaitable, Callable

from fastapi import Request, Response

from keygate.core.config import settings
from keygate.core.logging import clear_request_id, set_request_id

DURATION_HEADER = "X-Request-Duration-ms"


async def request_id_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    header = settings.log.request_id_header
    request_id = request.headers.get(header) or uuid.uuid4().hex

    set_request_id(request_id)
    started = time.perf_counter()
    try:
        response = await call_next(request)
    finally:
        clear_request_id()

    response.headers[header] = request_id
    response.headers[DURATION_HEADER] = f"{(time.perf_counter() - started) * 1000:.2f}"
    return response
