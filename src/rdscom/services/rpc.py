"""Request/response correlation over queue keys."""

from __future__ import annotations

import asyncio
from typing import Literal

from ..codec import (
    decode_rpc_response,
    encode_envelope,
    encode_rpc_request,
    new_correlation_id,
)
from ..errors import (
    BrokerClosedError,
    BrokerError,
    MalformedMessageError,
    QueueError,
    RPCTimeoutError,
)
from ..logging import BrokerLogger, resolve_logger
from ..queue.base import WAIT_FOREVER, QueueClient

RPCStrategy = Literal["backchannel", "per_call"]


class RPCCorrelator:
    """Matches RPC responses to the callers waiting for them.

    With the ``backchannel`` strategy every caller shares ``response_channel``
    and a single background task pops it, handing each response to the
    pending call with the same correlation id. With ``per_call`` every call
    gets its own response key and pops it directly.

    Each pending call is removed from the table exactly once, whether it is
    answered, times out or fails, so a late response finds nothing to
    resolve and is dropped.
    """

    def __init__(
        self,
        queue: QueueClient,
        response_channel: str,
        *,
        strategy: RPCStrategy = "backchannel",
        logger: BrokerLogger | None = None,
    ) -> None:
        if strategy not in ("backchannel", "per_call"):
            raise ValueError(f"Unknown RPC strategy '{strategy}'")
        self.response_channel = response_channel
        self.strategy = strategy
        self._queue = queue
        self._logger = resolve_logger(logger, __name__)
        self._pending: dict[str, asyncio.Future[str] | None] = {}
        self._listener: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def listening(self) -> bool:
        return self._listener is not None and not self._listener.done()

    async def call(
        self,
        channel: str,
        message: str,
        trace_id: str | None = None,
        timeout_seconds: float = 30.0,
    ) -> str:
        """Send ``message`` to ``channel`` and wait for the responder's answer."""

        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if self._closed:
            raise BrokerClosedError("RPC correlator is closed")

        correlation_id = new_correlation_id()
        if self.strategy == "per_call":
            # the caller pops its own key, so there is nothing to resolve
            self._pending[correlation_id] = None
            try:
                return await self._call_per_channel(
                    channel, message, trace_id, timeout_seconds, correlation_id
                )
            finally:
                self._pending.pop(correlation_id, None)

        future: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        self._pending[correlation_id] = future
        try:
            self._ensure_listener()
            await self._queue.append(
                channel,
                encode_envelope(
                    encode_rpc_request(correlation_id, message, self.response_channel),
                    trace_id,
                ),
            )
            try:
                return await asyncio.wait_for(future, timeout_seconds)
            except asyncio.TimeoutError:
                raise RPCTimeoutError(timeout_seconds, correlation_id=correlation_id) from None
        finally:
            self._pending.pop(correlation_id, None)

    async def _call_per_channel(
        self,
        channel: str,
        message: str,
        trace_id: str | None,
        timeout_seconds: float,
        correlation_id: str,
    ) -> str:
        response_channel = f"rpc:response:{correlation_id}"
        await self._queue.append(
            channel,
            encode_envelope(
                encode_rpc_request(correlation_id, message, response_channel), trace_id
            ),
        )
        try:
            popped = await self._queue.blocking_pop([response_channel], timeout_seconds)
        finally:
            try:
                await self._queue.delete(response_channel)
            except QueueError as exc:
                self._logger.warning(
                    "rpc_response_cleanup_failed",
                    response_channel=response_channel,
                    error=str(exc),
                )

        if popped is None:
            raise RPCTimeoutError(timeout_seconds, correlation_id=correlation_id)
        return decode_rpc_response(popped[1]).message

    def _ensure_listener(self) -> None:
        if self.listening:
            return
        self._listener = asyncio.get_running_loop().create_task(
            self._listen(), name=f"rdscom-rpc:{self.response_channel}"
        )

    async def _listen(self) -> None:
        try:
            while not self._closed:
                try:
                    popped = await self._queue.blocking_pop(
                        [self.response_channel], WAIT_FOREVER
                    )
                except QueueError as exc:
                    self._logger.error(
                        "rpc_backchannel_failed",
                        response_channel=self.response_channel,
                        pending=len(self._pending),
                        error=str(exc),
                    )
                    self._fail_pending(exc)
                    return

                if popped is None:
                    continue
                try:
                    self._dispatch(popped[1])
                except Exception as exc:  # noqa: BLE001
                    self._logger.error(
                        "rpc_response_dispatch_failed",
                        response_channel=self.response_channel,
                        error=str(exc),
                        exc_info=True,
                    )
        except Exception as exc:  # noqa: BLE001
            # waiting callers must not sit out their timeout on a dead listener
            self._logger.error(
                "rpc_backchannel_crashed",
                response_channel=self.response_channel,
                pending=len(self._pending),
                error=str(exc),
                exc_info=True,
            )
            self._fail_pending(BrokerError(f"RPC backchannel listener failed: {exc}"))

    def _dispatch(self, raw: str) -> None:
        try:
            response = decode_rpc_response(raw)
        except MalformedMessageError as exc:
            self._logger.warning(
                "malformed_rpc_response",
                response_channel=self.response_channel,
                error=str(exc),
                raw_message=raw,
            )
            return
        self._resolve(response.correlation_id, response.message)

    def _resolve(self, correlation_id: str, message: str) -> None:
        future = self._pending.pop(correlation_id, None)
        if future is None or future.done():
            self._logger.debug("rpc_response_dropped", correlation_id=correlation_id)
            return
        future.set_result(message)

    def _fail_pending(self, exc: BrokerError) -> None:
        pending = list(self._pending.values())
        self._pending.clear()
        for future in pending:
            if future is not None and not future.done():
                future.set_exception(exc)

    async def close(self) -> None:
        """Stop the backchannel listener and fail calls still waiting."""

        self._closed = True
        listener, self._listener = self._listener, None
        if listener is not None and not listener.done():
            listener.cancel()
            try:
                await listener
            except asyncio.CancelledError:
                pass
        self._fail_pending(BrokerClosedError("Broker stopped before a response arrived"))
