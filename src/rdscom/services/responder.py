"""Adapter turning an RPC handler into a worker message handler."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from ..codec import decode_rpc_request, encode_rpc_response
from ..errors import QueueError, ResponseDeliveryError
from ..logging import BrokerLogger, resolve_logger
from ..queue.base import QueueClient
from .worker import ErrorHandler, MalformedMessageHandler, MessageHandler

RPCHandler = Callable[[str, str], Awaitable[str]]
RPCErrorHandler = ErrorHandler


def build_responder(
    queue: QueueClient,
    handler: RPCHandler,
    *,
    error_handler: RPCErrorHandler | None = None,
    logger: BrokerLogger | None = None,
) -> MessageHandler:
    """Wrap ``handler`` so each request is answered on its response channel.

    A failed request is reported and left unanswered; the caller sees a
    timeout.
    """

    log = resolve_logger(logger, __name__)

    async def respond(payload: str, trace_id: str) -> None:
        try:
            request = decode_rpc_request(payload)
            result = await handler(request.message, trace_id)
            try:
                await queue.append(
                    request.response_channel,
                    encode_rpc_response(request.correlation_id, result),
                )
            except QueueError as exc:
                raise ResponseDeliveryError(f"Failed to send RPC response: {exc}") from exc
        except Exception as exc:  # noqa: BLE001
            if error_handler is None:
                log.error("rpc_handler_failed", trace_id=trace_id, error=str(exc))
                return
            await error_handler(exc, payload, trace_id)

    return respond


def build_malformed_rpc_logger(logger: BrokerLogger | None = None) -> MalformedMessageHandler:
    log = resolve_logger(logger, __name__)

    async def log_malformed(error: Exception, message: str) -> None:
        log.warning("malformed_rpc_message_received", error=str(error), raw_message=message)

    return log_malformed
