"""Client for the admin RPC listener.

Used by operators and automation to report blacklisted keys and trigger key
generation:

    with AdminClient("http://127.0.0.1:8081") as client:
        generated = client.blacklist("host-123")
        client.trigger()

A failed ``blacklist`` call raises ``AdminRPCError``; the blacklist state is
then unknown, not "not blacklisted".
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Any

import httpx

from keygate.api.admin import BLACKLIST_METHOD, TRIGGER_METHOD
from keygate.core.errors import AppError
from keygate.schemas.rpc import RPCRequest, RPCResponse

logger = logging.getLogger(__name__)


class AdminRPCError(AppError):
    """Raised when an admin procedure fails or the call cannot be completed."""


class AdminClient:
    """Synchronous JSON-RPC client for the admin listener.

    Args:
        base_url: Admin listener URL, e.g. ``http://127.0.0.1:8081``.
        timeout_seconds: Per-call timeout.
        http_client: Optional preconfigured ``httpx.Client`` (its base URL is
            used as is); the caller keeps ownership of it.
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8081",
        *,
        timeout_seconds: float = 30.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(base_url=base_url, timeout=timeout_seconds)
        self._ids = itertools.count(1)
        self._ids_lock = threading.Lock()

    def __enter__(self) -> "AdminClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def blacklist(self, keyname: str) -> bool:
        """Report ``keyname`` as blacklisted.

        Returns:
            bool: True if the report triggered generation of a new key.

        Raises:
            AdminRPCError: If the backend failed or the call did not complete.
        """
        result = self.call(BLACKLIST_METHOD, [keyname])
        if not isinstance(result, bool):
            raise AdminRPCError(
                code="admin_bad_result",
                message=f"{BLACKLIST_METHOD} returned a non-boolean result",
            )
        return result

    def trigger(self) -> None:
        """Ask the backend to generate a new key."""
        self.call(TRIGGER_METHOD, [])

    def call(self, method: str, params: list[Any] | dict[str, Any] | None = None) -> Any:
        """Invoke ``method`` and return its result.

        Raises:
            AdminRPCError: On transport failure or a JSON-RPC error reply.
        """
        with self._ids_lock:
            call_id = next(self._ids)
        request = RPCRequest(method=method, params=params, id=call_id)

        try:
            response = self._client.post("/rpc", json=request.model_dump())
            response.raise_for_status()
            reply = RPCResponse.model_validate(response.json())
        except httpx.HTTPError as exc:
            logger.error(
                "admin_client.transport_failed",
                extra={"method": method, "error_type": type(exc).__name__, "error_msg": str(exc)},
            )
            raise AdminRPCError(code="admin_transport_error", message=str(exc)) from exc
        except ValueError as exc:
            raise AdminRPCError(
                code="admin_bad_reply",
                message=f"malformed reply to {method}",
            ) from exc

        if reply.error is not None:
            raise AdminRPCError(
                code="admin_procedure_failed",
                message=reply.error.message,
                details={"operation": method, "context": {"rpc_code": reply.error.code}},
            )
        return reply.result
