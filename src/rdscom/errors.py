"""Exception hierarchy shared by the broker, workers and queue clients."""

from __future__ import annotations


class BrokerError(RuntimeError):
    """Base class for every error raised by rdscom."""


class QueueError(BrokerError):
    """Raised when the underlying queue store fails or is unreachable."""

    def __init__(self, message: str, *, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class MalformedMessageError(BrokerError):
    """Raised when a queue item is not a valid envelope or RPC record."""

    def __init__(self, message: str, *, raw: str | None = None) -> None:
        super().__init__(message)
        self.raw = raw


class RPCTimeoutError(BrokerError, TimeoutError):
    """Raised to an RPC caller when no response arrives before the deadline."""

    def __init__(
        self,
        timeout_seconds: float,
        *,
        correlation_id: str | None = None,
        message: str | None = None,
    ) -> None:
        super().__init__(
            message or f"RPC timeout: No response received within {timeout_seconds:g} seconds"
        )
        self.timeout_seconds = timeout_seconds
        self.correlation_id = correlation_id


class ResponseDeliveryError(BrokerError):
    """Raised when a responder cannot push its result back to the caller."""


class BrokerClosedError(BrokerError):
    """Raised to pending callers when the broker shuts down underneath them."""
