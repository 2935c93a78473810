"""Run live smoke tests against a Redis server.

Run with:
    REDIS_URL=redis://127.0.0.1:6379/0 PYTHONPATH=src python scripts/smoke_tests.py
"""

from __future__ import annotations

import asyncio
import textwrap
import uuid

from rdscom import RPCTimeoutError, create_message_broker
from rdscom.logging import configure_logging
from rdscom.services.broker import MessageBroker
from rdscom.settings import Settings


async def check_delivery(broker: MessageBroker) -> str:
    channel = f"smoke:{uuid.uuid4().hex[:8]}"
    received: list[str] = []

    async def handler(message: str, trace_id: str) -> None:
        received.append(message)

    worker = broker.listen(channel, handler)
    await broker.send(channel, "Hello, world!")
    await broker.send(channel, "How are you?")
    await asyncio.sleep(1)
    await worker.stop()
    assert received == ["Hello, world!", "How are you?"], received
    return f"received {received}"


async def check_rpc(broker: MessageBroker) -> str:
    channel = f"rpc:smoke:{uuid.uuid4().hex[:8]}"
    seen: list[str] = []

    async def responder(message: str, trace_id: str) -> str:
        seen.append(message)
        return "pong" if message == "ping" else message

    worker = broker.listen_and_respond(channel, responder)
    try:
        result = await broker.send_and_wait_for_response(channel, "ping", timeout_seconds=5)
    finally:
        await worker.stop()
    assert result == "pong" and seen == ["ping"], (result, seen)
    return f"responder saw {seen}, caller got {result!r}"


async def check_timeout(broker: MessageBroker) -> str:
    channel = f"rpc:nobody:{uuid.uuid4().hex[:8]}"
    loop = asyncio.get_running_loop()
    start = loop.time()
    try:
        await broker.send_and_wait_for_response(channel, "anyone?", timeout_seconds=1)
    except RPCTimeoutError as exc:
        elapsed = loop.time() - start
        await broker.queue.delete(channel)
        return f"{exc} after {elapsed:.2f}s"
    raise AssertionError("expected a timeout")


CASES = [
    ("delivery", check_delivery),
    ("rpc", check_rpc),
    ("timeout", check_timeout),
]


async def main() -> None:
    settings = Settings()
    configure_logging(settings.log_level)
    broker = create_message_broker(settings)
    try:
        for label, case in CASES:
            try:
                summary = await case(broker)
            except Exception as exc:  # noqa: BLE001
                print(f"[{label}] ERROR: {exc}")
            else:
                print(f"[{label}] {textwrap.shorten(summary, width=160)}")
    finally:
        await broker.stop()


if __name__ == "__main__":
    asyncio.run(main())
