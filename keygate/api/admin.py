"""Admin RPC surface: JSON-RPC 2.0 over ``POST /rpc``.

Two procedures, named after the services they belong to:

- ``blacklister.Blacklist(keyname) -> generated``: report a blacklisted key.
  A backend failure is returned as a JSON-RPC error carrying the raw error
  message, so callers never mistake a failure for ``generated=false``.
- ``trigger.Trigger() -> null``: request key generation. Fire and
  acknowledge; always succeeds.

The listener is trusted by network placement only and performs no
authentication.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from keygate.adapters.keystore.base import AdminBackend
from keygate.core.errors import ValidationAppError
from keygate.schemas.rpc import (
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    PROCEDURE_FAILED,
    BlacklistParams,
    RPCError,
    RPCRequest,
    RPCResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Admin"])

BLACKLIST_METHOD = "blacklister.Blacklist"
TRIGGER_METHOD = "trigger.Trigger"

Procedure = Callable[[Any], Any]


class InvalidParamsError(ValidationAppError):
    """Raised when procedure arguments do not match its signature."""


def _invalid_params(message: str) -> InvalidParamsError:
    return InvalidParamsError(code="invalid_params", message=message)


class AdminProcedures:
    """Binds the admin procedures to a backend."""

    def __init__(self, backend: AdminBackend) -> None:
        self._backend = backend

    def blacklist(self, params: Any) -> bool:
        if isinstance(params, list):
            if len(params) != 1:
                raise _invalid_params("Blacklist takes exactly one argument: keyname")
            params = {"keyname": params[0]}
        if not isinstance(params, dict):
            raise _invalid_params("Blacklist requires a keyname")
        try:
            keyname = BlacklistParams.model_validate(params, strict=True).keyname
        except ValidationError as exc:
            raise _invalid_params("keyname must be a string") from exc

        try:
            generated = self._backend.report_blacklist(keyname)
        except Exception as exc:
            logger.error(
                "admin.blacklist_failed",
                extra={
                    "keyname": keyname,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            raise

        logger.info("admin.blacklist", extra={"keyname": keyname, "generated": bool(generated)})
        return bool(generated)

    def trigger(self, params: Any) -> None:
        # net/rpc style callers send an empty struct as the only argument
        if params not in (None, [], {}, [{}], [None]):
            raise _invalid_params("Trigger takes no arguments")

        self._backend.trigger_generation()
        logger.info("admin.trigger")
        return None

    def registry(self) -> dict[str, Procedure]:
        return {
            BLACKLIST_METHOD: self.blacklist,
            TRIGGER_METHOD: self.trigger,
        }


class RPCDispatcher:
    """Routes JSON-RPC calls to registered procedures."""

    def __init__(self, procedures: dict[str, Procedure]) -> None:
        self._procedures = dict(procedures)

    async def dispatch(self, call: RPCRequest) -> RPCResponse:
        procedure = self._procedures.get(call.method)
        if procedure is None:
            logger.warning("admin.unknown_method", extra={"method": call.method})
            return _error_response(call.id, METHOD_NOT_FOUND, f"method not found: {call.method}")

        try:
            result = await run_in_threadpool(procedure, call.params)
        except InvalidParamsError as exc:
            return _error_response(call.id, INVALID_PARAMS, exc.message)
        except Exception as exc:
            # Trusted operators get the raw failure text.
            return _error_response(call.id, PROCEDURE_FAILED, str(exc) or type(exc).__name__)

        return RPCResponse(result=result, id=call.id)


def _error_response(call_id: int | str | None, code: int, message: str) -> RPCResponse:
    return RPCResponse(error=RPCError(code=code, message=message), id=call_id)


@router.post("/rpc")
async def rpc_endpoint(request: Request) -> JSONResponse:
    """Decode one JSON-RPC call, run it, and encode the reply.

    Protocol errors are reported inside the JSON-RPC envelope with HTTP 200.
    """
    raw = await request.body()

    try:
        data = json.loads(raw)
    except (ValueError, UnicodeDecodeError):
        return JSONResponse(_error_response(None, PARSE_ERROR, "parse error").to_wire())

    try:
        call = RPCRequest.model_validate(data)
    except ValidationError:
        call_id = data.get("id") if isinstance(data, dict) else None
        if not isinstance(call_id, (int, str)):
            call_id = None
        return JSONResponse(_error_response(call_id, INVALID_REQUEST, "invalid request").to_wire())

    dispatcher: RPCDispatcher = request.app.state.rpc_dispatcher
    response = await dispatcher.dispatch(call)
    return JSONResponse(response.to_wire())
