from __future__ import annotations

import json
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from codex_gateway.infra.errors import INVALID_REQUEST, PARSE_ERROR, ProtocolError

RequestId = int | str


class McpMethod(StrEnum):
    initialize = "initialize"
    initialized = "initialized"
    tools_list = "tools/list"
    tools_call = "tools/call"


class JsonRpcRequest(BaseModel):
    """JSON-RPC 2.0 request envelope. id is absent for notifications."""

    jsonrpc: Literal["2.0"]
    id: RequestId | None = None
    method: str
    params: Any = None


class ClientInfo(BaseModel):
    name: str
    version: str | None = None


class InitializeParams(BaseModel):
    protocol_version: str = Field(alias="protocolVersion")
    capabilities: Any
    client_info: ClientInfo = Field(alias="clientInfo")


class ToolCallParams(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    arguments: dict[str, Any] | None = None


def jsonrpc_result(request_id: RequestId | None, result: Any) -> dict[str, Any]:
    """Build a JSON-RPC 2.0 success response."""
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def jsonrpc_error(
    request_id: RequestId | None,
    code: int,
    message: str,
    data: Any = None,
) -> dict[str, Any]:
    """Build a JSON-RPC 2.0 error response."""
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": request_id, "error": error}


def tool_result(request_id: RequestId | None, output: Any) -> dict[str, Any]:
    """Successful tools/call: the handler output as a single JSON content item."""
    return jsonrpc_result(request_id, {"content": [{"type": "json", "json": output}]})


def tool_error(request_id: RequestId | None, message: str, data: Any = None) -> dict[str, Any]:
    """Failed tool execution. Still a JSON-RPC success envelope: the call reached a tool."""
    result: dict[str, Any] = {
        "isError": True,
        "content": [{"type": "text", "text": message}],
    }
    if data is not None:
        result["data"] = data
    return jsonrpc_result(request_id, result)


def validation_details(exc: ValidationError) -> list[dict[str, Any]]:
    """JSON-safe view of a pydantic ValidationError for error.data."""
    return [
        {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
        for err in exc.errors(include_url=False)
    ]


def parse_rpc_request(raw: str | bytes) -> JsonRpcRequest:
    """Parse a raw HTTP body into a JsonRpcRequest.

    Raises ProtocolError with PARSE_ERROR on invalid JSON and INVALID_REQUEST
    on an envelope that is not a JSON-RPC 2.0 request.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProtocolError(
            f"Parse error: {e}", rpc_code=PARSE_ERROR, code="PARSE_ERROR"
        ) from e
    try:
        return JsonRpcRequest.model_validate(data)
    except ValidationError as e:
        raise ProtocolError(
            "Invalid JSON-RPC request",
            rpc_code=INVALID_REQUEST,
            data=validation_details(e),
            code="INVALID_REQUEST",
        ) from e
