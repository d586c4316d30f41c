import json

import pytest

from mcpbridge.mcp.errors import DecodeError
from mcpbridge.mcp.protocol_models import (
    RpcError,
    RpcRequest,
    RpcResponse,
    decode_response,
    encode_request,
    encode_response,
)


def test_encode_request_omits_params_when_none() -> None:
    wire = json.loads(encode_request("tools/list", None, 3))
    assert wire == {"jsonrpc": "2.0", "id": 3, "method": "tools/list"}


def test_encode_request_generates_string_id_when_missing() -> None:
    wire = json.loads(encode_request("initialize", {"capabilities": {}}))
    assert isinstance(wire["id"], str) and len(wire["id"]) == 32
    assert wire["params"] == {"capabilities": {}}


def test_request_requires_method_and_valid_id() -> None:
    with pytest.raises(ValueError):
        RpcRequest(method="")
    with pytest.raises(TypeError):
        RpcRequest(method="tools/list", id=True)


@pytest.mark.parametrize("request_id", ["req-1", 42, 2**53 + 1, None])
def test_response_id_kind_survives_round_trip(request_id) -> None:
    encoded = encode_response(RpcResponse(id=request_id, result={"ok": True}))
    decoded = decode_response(encoded)
    assert decoded.id == request_id
    assert type(decoded.id) is type(request_id)
    assert json.loads(encode_response(decoded))["id"] == request_id


def test_string_digits_id_is_not_coerced_to_int() -> None:
    decoded = decode_response('{"jsonrpc":"2.0","id":"7","result":1}')
    assert decoded.id == "7"
    assert b'"id":"7"' in encode_response(decoded)


def test_missing_result_and_error_decodes_as_null_result() -> None:
    decoded = decode_response(b'{"jsonrpc":"2.0","id":1}')
    assert decoded.result is None
    assert decoded.error is None


def test_error_envelope_is_decoded() -> None:
    decoded = decode_response(
        '{"jsonrpc":"2.0","id":1,"error":{"code":-32601,"message":"not found","data":{"m":"x"}}}'
    )
    assert decoded.error == RpcError(code=-32601, message="not found", data={"m": "x"})
    assert decoded.to_dict()["error"]["code"] == -32601


def test_malformed_json_raises_decode_error_with_raw_text() -> None:
    with pytest.raises(DecodeError) as exc_info:
        decode_response(b'{"jsonrpc": "2.0", "id": 1, ')
    assert exc_info.value.raw == '{"jsonrpc": "2.0", "id": 1, '


def test_non_object_payload_raises_decode_error() -> None:
    with pytest.raises(DecodeError, match="not an object"):
        decode_response("[1, 2, 3]")


def test_boolean_id_is_rejected() -> None:
    with pytest.raises(DecodeError, match="id type"):
        decode_response('{"jsonrpc":"2.0","id":true,"result":null}')


def test_error_without_integer_code_is_rejected() -> None:
    with pytest.raises(DecodeError, match="code"):
        decode_response('{"jsonrpc":"2.0","id":1,"error":{"code":"oops","message":"x"}}')
