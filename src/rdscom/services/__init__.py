"""Broker services."""

from .broker import MessageBroker
from .events import BrokerEvents
from .responder import RPCErrorHandler, RPCHandler, build_responder
from .rpc import RPCCorrelator
from .worker import ErrorHandler, MalformedMessageHandler, MessageHandler, Worker

__all__ = [
    "BrokerEvents",
    "ErrorHandler",
    "MalformedMessageHandler",
    "MessageBroker",
    "MessageHandler",
    "RPCCorrelator",
    "RPCErrorHandler",
    "RPCHandler",
    "Worker",
    "build_responder",
]
