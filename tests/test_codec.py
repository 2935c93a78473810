import json

import pytest

from rdscom.codec import (
    decode_envelope,
    decode_rpc_request,
    decode_rpc_response,
    encode_envelope,
    encode_rpc_request,
    encode_rpc_response,
)
from rdscom.errors import MalformedMessageError
from rdscom.models import Envelope, RPCRequest


def test_encode_envelope_uses_wire_field_names():
    raw = encode_envelope("Hello, World!", "test-trace-id")

    assert json.loads(raw) == {"traceId": "test-trace-id", "payload": "Hello, World!"}


def test_encode_envelope_generates_fresh_trace_ids():
    first = json.loads(encode_envelope("same"))
    second = json.loads(encode_envelope("same"))

    assert first["traceId"]
    assert first["traceId"] != second["traceId"]


def test_envelope_round_trip():
    envelope = Envelope(trace_id="t-1", payload='{"nested": ["json", 1]}')

    assert decode_envelope(envelope.to_json()) == envelope


def test_decode_envelope_ignores_unknown_fields():
    envelope = decode_envelope('{"traceId": "abc", "payload": "hi", "extra": 1}')

    assert envelope.trace_id == "abc"
    assert envelope.payload == "hi"


@pytest.mark.parametrize(
    "raw",
    [
        "invalid-json",
        "[]",
        '"just text"',
        '{"traceId": "t"}',
        '{"payload": "x"}',
        '{"traceId": 1, "payload": "x"}',
    ],
)
def test_decode_envelope_rejects_malformed_items(raw):
    with pytest.raises(MalformedMessageError) as excinfo:
        decode_envelope(raw)

    assert str(excinfo.value).startswith("Malformed message received")
    assert excinfo.value.raw == raw


def test_rpc_request_wire_format():
    raw = encode_rpc_request("corr-1", "ping", "rpc:backchannel:b1")

    assert json.loads(raw) == {
        "correlationId": "corr-1",
        "message": "ping",
        "responseChannel": "rpc:backchannel:b1",
    }
    assert decode_rpc_request(raw) == RPCRequest(
        correlation_id="corr-1", message="ping", response_channel="rpc:backchannel:b1"
    )


def test_rpc_response_wire_format():
    raw = encode_rpc_response("corr-1", "pong")

    assert json.loads(raw) == {"correlationId": "corr-1", "message": "pong"}
    assert decode_rpc_response(raw).message == "pong"


def test_decode_rpc_request_requires_response_channel():
    with pytest.raises(MalformedMessageError, match="Malformed RPC request received"):
        decode_rpc_request('{"correlationId": "c", "message": "m"}')
