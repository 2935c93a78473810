"""Select a queue store implementation from settings."""

from __future__ import annotations

from ..settings import Settings
from .base import QueueClient
from .memory import InMemoryQueueClient
from .redis_client import RedisQueueClient


def create_queue_client(settings: Settings) -> QueueClient:
    backend = settings.queue_backend
    if backend == "redis":
        return RedisQueueClient(
            settings.redis_url, max_connections=settings.redis_max_connections
        )
    if backend == "memory":
        return InMemoryQueueClient()
    raise ValueError(f"Unknown queue backend '{backend}'")
