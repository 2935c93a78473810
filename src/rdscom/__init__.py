"""Message queue delivery and RPC over blocking list pops."""

from .errors import (
    BrokerClosedError,
    BrokerError,
    MalformedMessageError,
    QueueError,
    ResponseDeliveryError,
    RPCTimeoutError,
)
from .models import Envelope, RPCRequest, RPCResponse, WorkerStats
from .queue import InMemoryQueueClient, QueueClient, RedisQueueClient, create_queue_client
from .services import MessageBroker, Worker
from .settings import Settings, get_settings


def create_message_broker(
    settings: Settings | None = None, queue: QueueClient | None = None
) -> MessageBroker:
    """Build a broker from settings, creating the queue store if none is given."""

    settings = settings or get_settings()
    return MessageBroker(queue or create_queue_client(settings), settings=settings)


__all__ = [
    "BrokerClosedError",
    "BrokerError",
    "Envelope",
    "InMemoryQueueClient",
    "MalformedMessageError",
    "MessageBroker",
    "QueueClient",
    "QueueError",
    "RPCRequest",
    "RPCResponse",
    "RPCTimeoutError",
    "RedisQueueClient",
    "ResponseDeliveryError",
    "Settings",
    "Worker",
    "WorkerStats",
    "create_message_broker",
    "create_queue_client",
    "get_settings",
]
