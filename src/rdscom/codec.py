"""Encoding and decoding of envelopes and RPC records.

Every item on a queue key is a JSON object with exactly two string fields,
``traceId`` and ``payload``. RPC calls nest a second JSON document inside
``payload``. Anything that does not parse as such is reported as a
:class:`~rdscom.errors.MalformedMessageError` carrying the raw text.
"""

from __future__ import annotations

import uuid
from typing import TypeVar

from pydantic import ValidationError

from .errors import MalformedMessageError
from .models import Envelope, RPCRequest, RPCResponse, WireModel

ModelT = TypeVar("ModelT", bound=WireModel)


def new_trace_id() -> str:
    return uuid.uuid4().hex


def new_correlation_id() -> str:
    return uuid.uuid4().hex


def encode_envelope(payload: str, trace_id: str | None = None) -> str:
    return Envelope(trace_id=trace_id or new_trace_id(), payload=payload).to_json()


def decode_envelope(raw: str) -> Envelope:
    return _decode(Envelope, raw, "Malformed message received")


def encode_rpc_request(correlation_id: str, message: str, response_channel: str) -> str:
    return RPCRequest(
        correlation_id=correlation_id,
        message=message,
        response_channel=response_channel,
    ).to_json()


def decode_rpc_request(raw: str) -> RPCRequest:
    return _decode(RPCRequest, raw, "Malformed RPC request received")


def encode_rpc_response(correlation_id: str, message: str) -> str:
    return RPCResponse(correlation_id=correlation_id, message=message).to_json()


def decode_rpc_response(raw: str) -> RPCResponse:
    return _decode(RPCResponse, raw, "Malformed RPC response received")


def _decode(model: type[ModelT], raw: str, prefix: str) -> ModelT:
    try:
        # strict: a number where a string belongs is not a valid record
        return model.model_validate_json(raw, strict=True)
    except ValidationError as exc:
        detail = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}"
            for err in exc.errors()
        )
        raise MalformedMessageError(f"{prefix}: {detail}", raw=raw) from exc
