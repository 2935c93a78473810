"""Wire records and snapshots exchanged over the queue."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class WireModel(BaseModel):
    """Base for records serialized with camelCase keys."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class Envelope(WireModel):
    """Minimal wrapper placed on every queue key."""

    trace_id: str = Field(..., alias="traceId")
    payload: str


class RPCRequest(WireModel):
    """Inner payload of an envelope carrying an RPC call."""

    correlation_id: str = Field(..., alias="correlationId")
    message: str
    response_channel: str = Field(..., alias="responseChannel")


class RPCResponse(WireModel):
    """Record pushed to the caller's response channel."""

    correlation_id: str = Field(..., alias="correlationId")
    message: str


class WorkerStats(WireModel):
    """Point-in-time view of a worker pool."""

    active_workers: int = Field(..., alias="activeWorkers", ge=0)
    worklimit: int = Field(..., ge=0)
