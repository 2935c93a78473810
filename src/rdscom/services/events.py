"""Broker-level event listeners."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

Listener = Callable[..., Any]


class BrokerEvents:
    """Synchronous listener registry keyed by event name."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[tuple[Listener, bool]]] = defaultdict(list)

    def on(self, event: str, listener: Listener) -> None:
        self._listeners[event].append((listener, False))

    def once(self, event: str, listener: Listener) -> None:
        self._listeners[event].append((listener, True))

    def off(self, event: str, listener: Listener) -> None:
        self._listeners[event] = [
            entry for entry in self._listeners.get(event, []) if entry[0] is not listener
        ]

    def emit(self, event: str, *args: Any) -> int:
        entries = self._listeners.get(event)
        if not entries:
            return 0
        self._listeners[event] = [entry for entry in entries if not entry[1]]
        for listener, _ in entries:
            try:
                listener(*args)
            except Exception as exc:  # noqa: BLE001
                logger.error("event_listener_failed", event_name=event, error=str(exc))
        return len(entries)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def clear(self) -> None:
        self._listeners.clear()
