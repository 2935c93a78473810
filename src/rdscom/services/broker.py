"""Message broker tying workers, RPC correlation and the queue store together."""

from __future__ import annotations

import uuid

from ..codec import encode_envelope, new_trace_id
from ..errors import QueueError
from ..logging import BrokerLogger, resolve_logger
from ..models import WorkerStats
from ..queue.base import QueueClient
from ..settings import Settings
from .events import BrokerEvents, Listener
from .responder import RPCErrorHandler, RPCHandler, build_malformed_rpc_logger, build_responder
from .rpc import RPCCorrelator
from .worker import ErrorHandler, MalformedMessageHandler, MessageHandler, Worker


class MessageBroker:
    """Main entry point for sending, consuming and answering messages."""

    def __init__(
        self,
        queue: QueueClient,
        *,
        settings: Settings | None = None,
        logger: BrokerLogger | None = None,
        broker_id: str | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._queue = queue
        self._logger = resolve_logger(logger, __name__)
        self.broker_id = broker_id or uuid.uuid4().hex
        self.events = BrokerEvents()
        self.workers: dict[str, Worker] = {}
        self.rpc = RPCCorrelator(
            queue,
            f"rpc:backchannel:{self.broker_id}",
            strategy=self._settings.rpc_strategy,
            logger=self._logger,
        )
        self._stopped = False

    @property
    def queue(self) -> QueueClient:
        return self._queue

    @property
    def settings(self) -> Settings:
        return self._settings

    async def send(self, channel: str, message: str, trace_id: str | None = None) -> str:
        """Append ``message`` to ``channel`` and return the trace id it carries."""

        trace_id = trace_id or new_trace_id()
        await self._queue.append(channel, encode_envelope(message, trace_id))
        return trace_id

    def listen(
        self,
        channel: str,
        handler: MessageHandler,
        malformed_handler: MalformedMessageHandler | None = None,
        worklimit: int | None = None,
        *,
        error_handler: ErrorHandler | None = None,
    ) -> Worker:
        """Start a worker pool on ``channel``; needs a running event loop."""

        worker = Worker(
            self._queue,
            channel,
            handler,
            malformed_handler=malformed_handler,
            error_handler=error_handler,
            worklimit=self._settings.default_worklimit if worklimit is None else worklimit,
            poll_interval=self._settings.stop_poll_interval_seconds,
            logger=self._logger,
            on_fatal=self._on_worker_failure,
        )
        self.workers[worker.worker_id] = worker
        worker.start()
        return worker

    async def send_and_wait_for_response(
        self,
        channel: str,
        message: str,
        trace_id: str | None = None,
        timeout_seconds: float | None = None,
    ) -> str:
        """Issue an RPC call; raises :class:`RPCTimeoutError` when unanswered."""

        if timeout_seconds is None:
            timeout_seconds = self._settings.rpc_timeout_seconds
        return await self.rpc.call(channel, message, trace_id, timeout_seconds)

    def listen_and_respond(
        self,
        channel: str,
        handler: RPCHandler,
        error_handler: RPCErrorHandler | None = None,
        worklimit: int | None = None,
    ) -> Worker:
        """Serve RPC requests on ``channel`` with ``handler``."""

        return self.listen(
            channel,
            build_responder(
                self._queue, handler, error_handler=error_handler, logger=self._logger
            ),
            build_malformed_rpc_logger(self._logger),
            worklimit,
        )

    def on(self, event: str, listener: Listener) -> None:
        self.events.on(event, listener)

    def once(self, event: str, listener: Listener) -> None:
        self.events.once(event, listener)

    def off(self, event: str, listener: Listener) -> None:
        self.events.off(event, listener)

    def stats(self) -> dict[str, WorkerStats]:
        return {worker_id: worker.get_stats() for worker_id, worker in self.workers.items()}

    async def stop(self) -> None:
        """Drain every worker started here and release the queue store.

        When a worker cannot be drained the first store error is raised after
        every other worker was attempted, and the store stays open so that
        ``stop()`` can be retried.
        """

        if self._stopped:
            return
        await self.rpc.close()
        failure: QueueError | None = None
        for worker in list(self.workers.values()):
            if not (worker.running or worker.get_stats().active_workers):
                continue
            try:
                await worker.stop()
            except QueueError as exc:
                self._logger.error(
                    "worker_stop_failed",
                    channel=worker.channel,
                    worker_id=worker.worker_id,
                    error=str(exc),
                )
                failure = failure or exc
        if failure is not None:
            raise failure
        self._stopped = True
        self.events.clear()
        await self._queue.aclose()

    def _on_worker_failure(self, error: Exception, channel: str) -> None:
        self.events.emit("error", error, channel)
