import asyncio

import httpx
import pytest

from rdscom.app import create_app
from rdscom.client import BrokerHTTPClient
from rdscom.errors import BrokerError, QueueError, RPCTimeoutError
from rdscom.queue import InMemoryQueueClient
from rdscom.settings import Settings


def test_client_round_trip_through_app():
    async def _run():
        queue = InMemoryQueueClient()
        app = create_app(
            settings=Settings(queue_backend="memory", stop_poll_interval_seconds=0.01),
            queue=queue,
        )
        broker = app.state.broker

        async def respond(message, trace_id):
            return f"echo:{message}"

        worker = broker.listen_and_respond("rpc:echo", respond)
        transport = httpx.ASGITransport(app=app)
        async with BrokerHTTPClient("http://testserver", transport=transport) as client:
            trace_id = await client.send("jobs", "queued", trace_id="t-1")
            answer = await client.request("rpc:echo", "hi", timeout_seconds=2)
            stats = await client.worker_stats()
            resized = await client.set_worklimit(worker.worker_id, 3)

        assert trace_id == "t-1"
        assert len(queue.snapshot("jobs")) == 1
        assert answer == "echo:hi"
        assert stats[worker.worker_id].worklimit == 1
        assert resized.worklimit == 3
        assert resized.active_workers == 3
        await broker.stop()

    asyncio.run(_run())


def _error_transport(status_code: int, code: str) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            status_code,
            json={"detail": {"error": {"message": "upstream said no", "code": code}}},
        )

    return httpx.MockTransport(handler)


@pytest.mark.parametrize(
    ("status_code", "code", "expected"),
    [
        (504, "rpc_timeout", RPCTimeoutError),
        (503, "queue_unavailable", QueueError),
        (500, "internal_error", BrokerError),
    ],
)
def test_client_maps_error_responses(status_code, code, expected):
    async def _run():
        transport = _error_transport(status_code, code)
        async with BrokerHTTPClient("http://testserver", transport=transport) as client:
            with pytest.raises(expected):
                await client.request("rpc:test", "ping", timeout_seconds=1)

    asyncio.run(_run())


def test_client_timeout_reports_server_default():
    async def _run():
        app = create_app(
            settings=Settings(
                queue_backend="memory",
                stop_poll_interval_seconds=0.01,
                rpc_timeout_seconds=0.1,
            ),
            queue=InMemoryQueueClient(),
        )
        transport = httpx.ASGITransport(app=app)
        async with BrokerHTTPClient("http://testserver", transport=transport) as client:
            with pytest.raises(RPCTimeoutError) as excinfo:
                await client.request("rpc:nobody", "ping")

        assert str(excinfo.value) == "RPC timeout: No response received within 0.1 seconds"
        assert excinfo.value.timeout_seconds == 0.1
        assert excinfo.value.correlation_id
        await app.state.broker.stop()

    asyncio.run(_run())
