"""Queue store abstraction used by the broker."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from ..errors import QueueError

__all__ = ["QueueClient", "QueueError", "WAIT_FOREVER"]

WAIT_FOREVER = 0


class QueueClient(Protocol):
    """Interface for durable FIFO stores.

    Several consumers may pop from the same key; the store hands every
    appended item to exactly one of them. All failures surface as
    :class:`QueueError`.
    """

    name: str

    async def append(self, key: str, value: str) -> None:
        """Append ``value`` to the tail of the list at ``key``."""

    async def blocking_pop(
        self, keys: Sequence[str], timeout: float = WAIT_FOREVER
    ) -> tuple[str, str] | None:
        """Pop the head of the first non-empty key, waiting up to ``timeout`` seconds.

        ``timeout == 0`` waits indefinitely. Returns ``(key, value)`` or
        ``None`` when the wait expired.
        """

    async def delete(self, key: str) -> None:
        """Remove ``key`` and everything queued on it."""

    async def ping(self) -> bool:
        """Return True when the store answers."""

    async def aclose(self) -> None:
        """Release connections held by the client."""
