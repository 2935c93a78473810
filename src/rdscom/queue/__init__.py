"""Queue store exports."""

from .base import WAIT_FOREVER, QueueClient, QueueError
from .factory import create_queue_client
from .memory import InMemoryQueueClient
from .redis_client import RedisQueueClient

__all__ = [
    "WAIT_FOREVER",
    "QueueClient",
    "QueueError",
    "InMemoryQueueClient",
    "RedisQueueClient",
    "create_queue_client",
]
