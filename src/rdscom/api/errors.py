"""Utilities for translating broker errors into HTTP responses."""

from __future__ import annotations

from fastapi import HTTPException, status

from ..errors import BrokerClosedError, MalformedMessageError, QueueError, RPCTimeoutError


def map_exception(exc: Exception, channel: str | None = None) -> HTTPException:
    if isinstance(exc, RPCTimeoutError):
        return HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail={
                "error": {
                    "message": str(exc),
                    "code": "rpc_timeout",
                    "channel": channel,
                    "correlation_id": exc.correlation_id,
                    "timeout_seconds": exc.timeout_seconds,
                }
            },
        )

    if isinstance(exc, (QueueError, BrokerClosedError)):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "error": {
                    "message": str(exc),
                    "code": "queue_unavailable",
                    "channel": channel,
                }
            },
        )

    if isinstance(exc, MalformedMessageError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error": {"message": str(exc), "code": "malformed_message", "channel": channel}},
        )

    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"error": {"message": str(exc), "code": "internal_error", "channel": channel}},
    )
