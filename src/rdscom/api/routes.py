"""HTTP routes for the broker."""

from __future__ import annotations

import time

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status

from ..codec import new_trace_id
from ..logging import bind_trace
from ..services.broker import MessageBroker
from ..services.worker import Worker
from .errors import map_exception
from .schemas import (
    RPCCallRequest,
    RPCCallResponse,
    SendRequest,
    SendResponse,
    WorkerInfo,
    WorklimitUpdate,
)

logger = structlog.get_logger(__name__)
router = APIRouter()


def get_broker(request: Request) -> MessageBroker:
    broker: MessageBroker = request.app.state.broker
    return broker


@router.get("/healthz")
async def health_check(request: Request) -> dict[str, object]:
    broker = get_broker(request)
    return {
        "status": "ok",
        "environment": broker.settings.environment,
        "broker_id": broker.broker_id,
        "backend": broker.queue.name,
    }


@router.get("/readyz")
async def readiness(request: Request) -> dict[str, object]:
    broker = get_broker(request)
    reachable = await broker.queue.ping()
    details: dict[str, object] = {"backend": broker.queue.name, "queue_reachable": reachable}

    if not reachable:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"status": "not_ready", "details": details},
        )

    return {"status": "ready", "details": details}


@router.post(
    "/v1/channels/{channel}/messages",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=SendResponse,
)
async def send_message(
    channel: str,
    payload: SendRequest,
    broker: MessageBroker = Depends(get_broker),
) -> SendResponse:
    trace_id = payload.trace_id or new_trace_id()
    bind_trace(trace_id=trace_id, channel=channel)
    try:
        await broker.send(channel, payload.message, trace_id)
    except Exception as exc:  # noqa: BLE001
        logger.warning("send.failed", trace_id=trace_id, channel=channel, error=str(exc))
        raise map_exception(exc, channel) from exc
    return SendResponse(trace_id=trace_id)


@router.post("/v1/channels/{channel}/rpc", response_model=RPCCallResponse)
async def call_channel(
    channel: str,
    payload: RPCCallRequest,
    broker: MessageBroker = Depends(get_broker),
) -> RPCCallResponse:
    trace_id = payload.trace_id or new_trace_id()
    bind_trace(trace_id=trace_id, channel=channel)

    start = time.perf_counter()
    try:
        result = await broker.send_and_wait_for_response(
            channel, payload.message, trace_id, payload.timeout_seconds
        )
    except Exception as exc:  # noqa: BLE001
        logger.warning("rpc.failed", trace_id=trace_id, channel=channel, error=str(exc))
        raise map_exception(exc, channel) from exc

    logger.info(
        "rpc.complete",
        trace_id=trace_id,
        channel=channel,
        duration_ms=round((time.perf_counter() - start) * 1000, 2),
    )
    return RPCCallResponse(message=result)


@router.get("/v1/workers", response_model=list[WorkerInfo])
async def list_workers(broker: MessageBroker = Depends(get_broker)) -> list[WorkerInfo]:
    return [_worker_info(worker) for worker in broker.workers.values()]


@router.patch("/v1/workers/{worker_id}", response_model=WorkerInfo)
async def update_worker(
    worker_id: str,
    payload: WorklimitUpdate,
    broker: MessageBroker = Depends(get_broker),
) -> WorkerInfo:
    worker = broker.workers.get(worker_id)
    if worker is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": {"message": f"Unknown worker '{worker_id}'", "code": "unknown_worker"}},
        )
    worker.set_worklimit(payload.worklimit)
    logger.info("worker.resized", worker_id=worker_id, worklimit=payload.worklimit)
    return _worker_info(worker)


def _worker_info(worker: Worker) -> WorkerInfo:
    stats = worker.get_stats()
    return WorkerInfo(
        worker_id=worker.worker_id,
        channel=worker.channel,
        running=worker.running,
        active_workers=stats.active_workers,
        worklimit=stats.worklimit,
    )
