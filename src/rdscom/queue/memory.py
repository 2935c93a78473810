"""In-process queue store for local development and tests."""

from __future__ import annotations

import asyncio
from collections import defaultdict, deque
from collections.abc import Sequence

from ..errors import QueueError
from .base import WAIT_FOREVER


class _Waiter:
    __slots__ = ("keys", "future")

    def __init__(self, keys: tuple[str, ...], future: asyncio.Future[tuple[str, str]]) -> None:
        self.keys = keys
        self.future = future


class InMemoryQueueClient:
    """Per-key FIFO lists with blocking pops served in arrival order.

    Single-process only. An append is handed straight to the oldest waiter
    blocked on that key, otherwise it is queued until someone pops it.
    """

    name = "memory"

    def __init__(self) -> None:
        self._lists: dict[str, deque[str]] = defaultdict(deque)
        self._waiters: deque[_Waiter] = deque()
        self._closed = False

    async def append(self, key: str, value: str) -> None:
        self._check_open()
        if not self._hand_over(key, value):
            self._lists[key].append(value)

    async def blocking_pop(
        self, keys: Sequence[str], timeout: float = WAIT_FOREVER
    ) -> tuple[str, str] | None:
        self._check_open()
        keys = tuple(keys)
        for key in keys:
            items = self._lists.get(key)
            if items:
                value = items.popleft()
                if not items:
                    del self._lists[key]
                return key, value

        future: asyncio.Future[tuple[str, str]] = asyncio.get_running_loop().create_future()
        waiter = _Waiter(keys, future)
        self._waiters.append(waiter)
        try:
            if timeout and timeout > 0:
                return await asyncio.wait_for(future, timeout)
            return await future
        except asyncio.TimeoutError:
            self._restore(waiter)
            return None
        except asyncio.CancelledError:
            self._restore(waiter)
            raise
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)

    async def delete(self, key: str) -> None:
        self._check_open()
        self._lists.pop(key, None)

    async def ping(self) -> bool:
        return not self._closed

    async def aclose(self) -> None:
        self._closed = True
        for waiter in self._waiters:
            if not waiter.future.done():
                waiter.future.set_exception(QueueError("Queue client closed"))
        self._waiters.clear()

    def snapshot(self, key: str) -> list[str]:
        """Return the items currently queued on ``key`` without consuming them."""

        return list(self._lists.get(key, ()))

    @property
    def waiting(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.future.done())

    def _hand_over(self, key: str, value: str) -> bool:
        for waiter in list(self._waiters):
            if waiter.future.done():
                self._waiters.remove(waiter)
                continue
            if key in waiter.keys:
                self._waiters.remove(waiter)
                waiter.future.set_result((key, value))
                return True
        return False

    def _restore(self, waiter: _Waiter) -> None:
        # an item handed to a popper that gave up goes back to the head
        future = waiter.future
        if future.cancelled() or not future.done() or future.exception() is not None:
            return
        if waiter in self._waiters:
            self._waiters.remove(waiter)
        key, value = future.result()
        if not self._hand_over(key, value):
            self._lists[key].appendleft(value)

    def _check_open(self) -> None:
        if self._closed:
            raise QueueError("Queue client closed")
