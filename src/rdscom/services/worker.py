"""Resizable pool of pop-loops draining one queue key."""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from ..codec import decode_envelope
from ..errors import BrokerError, MalformedMessageError, QueueError
from ..logging import BrokerLogger, bind_trace, resolve_logger
from ..models import WorkerStats
from ..queue.base import WAIT_FOREVER, QueueClient

MessageHandler = Callable[[str, str], Awaitable[None]]
MalformedMessageHandler = Callable[[Exception, str], Awaitable[None]]
ErrorHandler = Callable[[Exception, str, str], Awaitable[None]]
FatalCallback = Callable[[Exception, str], None]

SHUTDOWN_SENTINEL = "1"


class Worker:
    """Consumes ``channel`` with at most ``worklimit`` concurrent pop-loops.

    Each loop blocks on the store, so an idle slot never fetches work it
    cannot process yet. ``worklimit == 0`` removes the ceiling: the pool
    starts with a single loop and only grows through :meth:`set_worklimit`.

    Loops are woken for shutdown by sentinels pushed to a key private to this
    pool, so other consumers of the same channel are unaffected by
    :meth:`stop`.
    """

    def __init__(
        self,
        queue: QueueClient,
        channel: str,
        handler: MessageHandler,
        *,
        malformed_handler: MalformedMessageHandler | None = None,
        error_handler: ErrorHandler | None = None,
        worklimit: int = 1,
        poll_interval: float = 0.1,
        logger: BrokerLogger | None = None,
        on_fatal: FatalCallback | None = None,
        worker_id: str | None = None,
    ) -> None:
        _check_worklimit(worklimit)
        self.worker_id = worker_id or uuid.uuid4().hex[:12]
        self.channel = channel
        self.shutdown_key = f"{channel}:trm:{self.worker_id}"
        self._queue = queue
        self._handler = handler
        self._malformed_handler = malformed_handler
        self._error_handler = error_handler
        self._worklimit = worklimit
        self._poll_interval = poll_interval
        self._logger = resolve_logger(logger, __name__)
        self._on_fatal = on_fatal
        self._running = False
        self._draining = False
        # live loop tasks; its size is the active worker count
        self._loops: set[asyncio.Task[None]] = set()
        # loops currently inside a handler
        self._busy: set[asyncio.Task[Any]] = set()

    @property
    def running(self) -> bool:
        return self._running

    @property
    def worklimit(self) -> int:
        return self._worklimit

    def start(self) -> None:
        """Begin consuming. Calling it on a running pool does nothing.

        Raises :class:`BrokerError` while :meth:`stop` is still draining.
        """

        if self._draining:
            raise BrokerError(f"Worker {self.worker_id} is still stopping")
        if self._running:
            return
        self._running = True
        target = self._worklimit or 1
        self._spawn(target - len(self._loops))
        self._logger.info(
            "worker_started",
            channel=self.channel,
            worker_id=self.worker_id,
            worklimit=self._worklimit,
        )

    async def stop(self) -> None:
        """Stop taking new messages and wait for in-flight handlers to finish."""

        self._running = False
        self._draining = True
        try:
            for _ in range(len(self._loops)):
                await self._queue.append(self.shutdown_key, SHUTDOWN_SENTINEL)
            while self._loops:
                await asyncio.sleep(self._poll_interval)
            await self._queue.delete(self.shutdown_key)
        finally:
            self._draining = False
        self._logger.info("worker_stopped", channel=self.channel, worker_id=self.worker_id)

    def set_worklimit(self, limit: int) -> None:
        """Change the concurrency ceiling.

        Raising it spawns the missing loops right away. Lowering it lets
        surplus loops retire once their current message is done.
        """

        _check_worklimit(limit)
        self._worklimit = limit
        if self._running and limit > len(self._loops):
            self._spawn(limit - len(self._loops))

    def get_stats(self) -> WorkerStats:
        return WorkerStats(active_workers=len(self._loops), worklimit=self._worklimit)

    def _spawn(self, count: int) -> None:
        loop = asyncio.get_running_loop()
        for _ in range(max(0, count)):
            task = loop.create_task(
                self._run_loop(), name=f"rdscom-worker:{self.channel}:{self.worker_id}"
            )
            self._loops.add(task)
            task.add_done_callback(self._loops.discard)

    def _over_limit(self) -> bool:
        return self._worklimit > 0 and len(self._loops) > self._worklimit

    async def _run_loop(self) -> None:
        me = asyncio.current_task()
        try:
            while self._running:
                try:
                    popped = await self._queue.blocking_pop(
                        [self.channel, self.shutdown_key], WAIT_FOREVER
                    )
                except QueueError as exc:
                    self._fail(exc)
                    return

                if popped is None:
                    continue
                key, raw = popped
                if key == self.shutdown_key:
                    return

                self._busy.add(me)
                try:
                    await self._dispatch(raw)
                except QueueError as exc:
                    self._fail(exc)
                    return
                finally:
                    self._busy.discard(me)

                if self._over_limit():
                    return
        finally:
            # drop out synchronously so sibling loops see the new count
            self._loops.discard(me)

    async def _dispatch(self, raw: str) -> None:
        try:
            envelope = decode_envelope(raw)
        except MalformedMessageError as exc:
            self._logger.warning(
                "malformed_message_received",
                channel=self.channel,
                error=str(exc),
                raw_message=raw,
            )
            if self._malformed_handler is not None:
                await self._call_safely("malformed_handler", self._malformed_handler, exc, raw)
            return

        bind_trace(trace_id=envelope.trace_id, channel=self.channel)
        try:
            await self._handler(envelope.payload, envelope.trace_id)
        except QueueError:
            raise
        except Exception as exc:  # noqa: BLE001
            if self._error_handler is None:
                self._logger.error(
                    "message_handler_failed",
                    channel=self.channel,
                    trace_id=envelope.trace_id,
                    error=str(exc),
                    exc_info=True,
                )
                return
            await self._call_safely(
                "error_handler", self._error_handler, exc, envelope.payload, envelope.trace_id
            )

    async def _call_safely(
        self, name: str, callback: Callable[..., Awaitable[None]], *args: Any
    ) -> None:
        try:
            await callback(*args)
        except QueueError:
            raise
        except Exception as exc:  # noqa: BLE001
            self._logger.error(
                "worker_callback_failed",
                channel=self.channel,
                callback=name,
                error=str(exc),
                exc_info=True,
            )

    def _fail(self, exc: QueueError) -> None:
        """Stop the whole pool after the store became unusable."""

        self._running = False
        self._logger.error(
            "worker_queue_failed",
            channel=self.channel,
            worker_id=self.worker_id,
            error=str(exc),
        )
        me = asyncio.current_task()
        # idle loops would otherwise stay parked on the broken store
        for task in list(self._loops):
            if task is not me and task not in self._busy:
                task.cancel()
        if self._on_fatal is not None:
            try:
                self._on_fatal(exc, self.channel)
            except Exception as callback_exc:  # noqa: BLE001
                self._logger.error(
                    "worker_fatal_callback_failed",
                    channel=self.channel,
                    error=str(callback_exc),
                )


def _check_worklimit(limit: int) -> None:
    if limit < 0:
        raise ValueError(f"worklimit must be >= 0, got {limit}")
