"""HTTP request and response schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field


class SendRequest(BaseModel):
    message: str
    trace_id: str | None = Field(default=None, min_length=1)


class SendResponse(BaseModel):
    trace_id: str


class RPCCallRequest(BaseModel):
    message: str
    trace_id: str | None = Field(default=None, min_length=1)
    timeout_seconds: float | None = Field(default=None, gt=0, le=300)


class RPCCallResponse(BaseModel):
    message: str


class WorkerInfo(BaseModel):
    worker_id: str
    channel: str
    running: bool
    active_workers: int
    worklimit: int


class WorklimitUpdate(BaseModel):
    worklimit: int = Field(..., ge=0)
