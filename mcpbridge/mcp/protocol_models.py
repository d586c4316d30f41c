"""JSON-RPC 2.0 envelopes exchanged with MCP servers, and their wire codec.

Request ids may be strings or integers; response ids may additionally be null
(or a float, which some servers echo back). Whatever kind an id was decoded
as is the kind it is encoded back to.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from mcpbridge.mcp.errors import DecodeError
from mcpbridge.utils.ids import new_request_id

JSONRPC_VERSION = "2.0"

_ID_TYPES = (str, int, float, type(None))


def _dumps(message: dict[str, Any]) -> bytes:
    return json.dumps(message, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _valid_id(value: Any) -> bool:
    # bool is an int subclass but never a valid JSON-RPC id
    return not isinstance(value, bool) and isinstance(value, _ID_TYPES)


@dataclass(frozen=True)
class RpcError:
    code: int
    message: str
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            out["data"] = self.data
        return out


@dataclass(frozen=True)
class RpcRequest:
    method: str
    params: dict[str, Any] | None = None
    id: str | int = field(default_factory=new_request_id)
    jsonrpc: str = JSONRPC_VERSION

    def __post_init__(self) -> None:
        if not self.method:
            raise ValueError("JSON-RPC method must be a non-empty string")
        if self.id is None or not _valid_id(self.id) or isinstance(self.id, float):
            raise TypeError(f"JSON-RPC request id must be str or int, got {type(self.id).__name__}")

    def to_dict(self) -> dict[str, Any]:
        msg: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id, "method": self.method}
        if self.params is not None:
            msg["params"] = self.params
        return msg


@dataclass(frozen=True)
class RpcResponse:
    id: str | int | float | None
    result: Any = None
    error: RpcError | None = None
    jsonrpc: str | None = JSONRPC_VERSION

    def to_dict(self) -> dict[str, Any]:
        msg: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            msg["error"] = self.error.to_dict()
        else:
            msg["result"] = self.result
        return msg


def encode_request(
    method: str,
    params: dict[str, Any] | None = None,
    request_id: str | int | None = None,
) -> bytes:
    """Serialize a request envelope; a string id is generated when none is given."""
    if request_id is None:
        request = RpcRequest(method=method, params=params)
    else:
        request = RpcRequest(method=method, params=params, id=request_id)
    return _dumps(request.to_dict())


def encode_response(response: RpcResponse) -> bytes:
    return _dumps(response.to_dict())


def _decode_error(value: Any, raw: str) -> RpcError | None:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise DecodeError("JSON-RPC error member is not an object", raw)
    code = value.get("code")
    if isinstance(code, bool) or not isinstance(code, int):
        raise DecodeError("JSON-RPC error code is not an integer", raw)
    message = value.get("message")
    return RpcError(
        code=code,
        message=message if isinstance(message, str) else str(message or ""),
        data=value.get("data"),
    )


def decode_message(raw: bytes | str) -> tuple[dict[str, Any], str]:
    """Parse raw bytes/text into a JSON object, returning it with the decoded text."""
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, (bytes, bytearray)) else raw
    try:
        message = json.loads(text)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Invalid JSON-RPC payload: {e.msg}", text) from e
    if not isinstance(message, dict):
        raise DecodeError("JSON-RPC payload is not an object", text)
    return message, text


def is_server_message(message: dict[str, Any]) -> bool:
    """True for server-initiated requests/notifications rather than responses."""
    return "method" in message and "result" not in message and "error" not in message


def decode_response(raw: bytes | str) -> RpcResponse:
    """Parse one response envelope.

    A payload carrying neither ``result`` nor ``error`` decodes with a null
    result. Malformed JSON raises DecodeError with the raw text attached.
    """
    message, text = decode_message(raw)
    return response_from_message(message, text)


def response_from_message(message: dict[str, Any], text: str) -> RpcResponse:
    request_id = message.get("id")
    if not _valid_id(request_id):
        raise DecodeError(f"Unsupported JSON-RPC id type: {type(request_id).__name__}", text)

    version = message.get("jsonrpc")
    return RpcResponse(
        id=request_id,
        result=message.get("result"),
        error=_decode_error(message.get("error"), text),
        jsonrpc=version if isinstance(version, str) else None,
    )
