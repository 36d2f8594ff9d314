"""JSON-RPC 2.0 envelopes used by the admin listener and its client."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

# Standard JSON-RPC 2.0 error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
# Implementation-defined range; the procedure itself reported a failure
PROCEDURE_FAILED = -32000


class RPCRequest(BaseModel):
    """A single JSON-RPC call."""

    jsonrpc: Literal["2.0"] = "2.0"
    method: str = Field(..., min_length=1)
    params: list[Any] | dict[str, Any] | None = None
    id: int | str | None = None


class RPCError(BaseModel):
    code: int
    message: str
    data: Any | None = None


class RPCResponse(BaseModel):
    """Reply to an RPC call; exactly one of ``result`` and ``error`` is meaningful."""

    jsonrpc: Literal["2.0"] = "2.0"
    result: Any | None = None
    error: RPCError | None = None
    id: int | str | None = None

    def to_wire(self) -> dict[str, Any]:
        data: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            data["error"] = self.error.model_dump(exclude_none=True)
        else:
            data["result"] = self.result
        return data


class BlacklistParams(BaseModel):
    keyname: str
