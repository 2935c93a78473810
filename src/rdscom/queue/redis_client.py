"""Queue store backed by Redis lists."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from ..errors import QueueError
from .base import WAIT_FOREVER

logger = structlog.get_logger(__name__)


class RedisQueueClient:
    """RPUSH / BLPOP / DEL over a ``redis.asyncio`` client.

    Every blocked pop occupies one pooled connection for as long as it waits.
    """

    name = "redis"

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        *,
        client: Any | None = None,
        max_connections: int | None = None,
    ) -> None:
        self._url = url
        if client is None:
            options: dict[str, Any] = {"decode_responses": True}
            if max_connections is not None:
                options["max_connections"] = max_connections
            client = aioredis.from_url(url, **options)
        self._redis = client

    async def append(self, key: str, value: str) -> None:
        try:
            await self._redis.rpush(key, value)
        except RedisError as exc:
            raise QueueError(f"RPUSH {key} failed: {exc}", key=key) from exc

    async def blocking_pop(
        self, keys: Sequence[str], timeout: float = WAIT_FOREVER
    ) -> tuple[str, str] | None:
        keys = list(keys)
        try:
            result = await self._redis.blpop(keys, timeout=timeout)
        except RedisError as exc:
            raise QueueError(f"BLPOP {' '.join(keys)} failed: {exc}", key=keys[0]) from exc
        if result is None:
            return None
        key, value = result
        return _as_text(key), _as_text(value)

    async def delete(self, key: str) -> None:
        try:
            await self._redis.delete(key)
        except RedisError as exc:
            raise QueueError(f"DEL {key} failed: {exc}", key=key) from exc

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError as exc:
            logger.warning("redis_ping_failed", url=self._url, error=str(exc))
            return False

    async def aclose(self) -> None:
        try:
            await self._redis.aclose()
        except RedisError as exc:
            raise QueueError(f"Closing redis client failed: {exc}") from exc


def _as_text(value: str | bytes) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value
