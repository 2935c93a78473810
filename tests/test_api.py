import json

from fastapi.testclient import TestClient

from rdscom.app import create_app
from rdscom.errors import QueueError, RPCTimeoutError
from rdscom.queue import InMemoryQueueClient
from rdscom.services.broker import MessageBroker
from rdscom.services.worker import Worker
from rdscom.settings import Settings


def _settings() -> Settings:
    return Settings(queue_backend="memory", stop_poll_interval_seconds=0.01)


class _UnreachableQueue(InMemoryQueueClient):
    async def ping(self):
        return False


def test_healthz():
    app = create_app(settings=_settings())
    with TestClient(app) as client:
        response = client.get("/healthz")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["backend"] == "memory"
    assert data["broker_id"] == app.state.broker.broker_id


def test_readyz_reports_queue_reachability():
    with TestClient(create_app(settings=_settings())) as client:
        assert client.get("/readyz").status_code == 200

    with TestClient(create_app(settings=_settings(), queue=_UnreachableQueue())) as client:
        response = client.get("/readyz")
    assert response.status_code == 503
    assert response.json()["detail"]["details"]["queue_reachable"] is False


def test_send_message_enqueues_envelope():
    queue = InMemoryQueueClient()
    app = create_app(settings=_settings(), queue=queue)
    with TestClient(app) as client:
        response = client.post(
            "/v1/channels/test-channel/messages",
            json={"message": "Hello, World!", "trace_id": "test-trace-id"},
        )
        queued = queue.snapshot("test-channel")

    assert response.status_code == 202
    assert response.json() == {"trace_id": "test-trace-id"}
    assert [json.loads(item) for item in queued] == [
        {"traceId": "test-trace-id", "payload": "Hello, World!"}
    ]


def test_send_message_maps_queue_errors(monkeypatch):
    async def fake_send(self, channel, message, trace_id=None):  # noqa: ANN001
        raise QueueError("Redis connection lost")

    monkeypatch.setattr(MessageBroker, "send", fake_send)

    with TestClient(create_app(settings=_settings())) as client:
        response = client.post("/v1/channels/test-channel/messages", json={"message": "hi"})

    assert response.status_code == 503
    assert response.json()["detail"]["error"]["code"] == "queue_unavailable"


def test_rpc_returns_response(monkeypatch):
    calls = {}

    async def fake_call(self, channel, message, trace_id=None, timeout_seconds=None):  # noqa: ANN001
        calls.update(channel=channel, message=message, timeout_seconds=timeout_seconds)
        return "pong"

    monkeypatch.setattr(MessageBroker, "send_and_wait_for_response", fake_call)

    with TestClient(create_app(settings=_settings())) as client:
        response = client.post(
            "/v1/channels/rpc:test/rpc", json={"message": "ping", "timeout_seconds": 2}
        )

    assert response.status_code == 200
    assert response.json() == {"message": "pong"}
    assert calls == {"channel": "rpc:test", "message": "ping", "timeout_seconds": 2}


def test_rpc_timeout_maps_to_gateway_timeout(monkeypatch):
    async def fake_call(self, channel, message, trace_id=None, timeout_seconds=None):  # noqa: ANN001
        raise RPCTimeoutError(1, correlation_id="corr-123")

    monkeypatch.setattr(MessageBroker, "send_and_wait_for_response", fake_call)

    with TestClient(create_app(settings=_settings())) as client:
        response = client.post("/v1/channels/rpc:test/rpc", json={"message": "ping"})

    assert response.status_code == 504
    error = response.json()["detail"]["error"]
    assert error["code"] == "rpc_timeout"
    assert error["correlation_id"] == "corr-123"
    assert error["timeout_seconds"] == 1
    assert error["channel"] == "rpc:test"


def test_rpc_rejects_invalid_timeout():
    with TestClient(create_app(settings=_settings())) as client:
        response = client.post(
            "/v1/channels/rpc:test/rpc", json={"message": "ping", "timeout_seconds": 0}
        )

    assert response.status_code == 422


def test_workers_listing_and_resize():
    app = create_app(settings=_settings())
    broker: MessageBroker = app.state.broker

    async def handler(message, trace_id):  # noqa: ANN001
        return None

    worker = Worker(broker.queue, "jobs", handler, worker_id="w-1")
    broker.workers[worker.worker_id] = worker

    with TestClient(app) as client:
        listing = client.get("/v1/workers")
        resized = client.patch("/v1/workers/w-1", json={"worklimit": 4})
        missing = client.patch("/v1/workers/nope", json={"worklimit": 4})
        invalid = client.patch("/v1/workers/w-1", json={"worklimit": -1})

    assert listing.status_code == 200
    assert listing.json() == [
        {
            "worker_id": "w-1",
            "channel": "jobs",
            "running": False,
            "active_workers": 0,
            "worklimit": 1,
        }
    ]
    assert resized.status_code == 200
    assert resized.json()["worklimit"] == 4
    assert missing.status_code == 404
    assert invalid.status_code == 422


def test_request_id_is_echoed():
    with TestClient(create_app(settings=_settings())) as client:
        response = client.get("/healthz", headers={"x-request-id": "req-1"})

    assert response.headers["x-request-id"] == "req-1"


def test_setup_hook_registers_listeners_on_startup():
    registered: list[Worker] = []

    async def handler(message, trace_id):  # noqa: ANN001
        return None

    def setup(broker: MessageBroker) -> None:
        registered.append(broker.listen("jobs", handler, worklimit=2))

    app = create_app(settings=_settings(), setup=setup)
    with TestClient(app) as client:
        listing = client.get("/v1/workers")
        worker_id = registered[0].worker_id
        resized = client.patch(f"/v1/workers/{worker_id}", json={"worklimit": 3})

    assert [entry["worker_id"] for entry in listing.json()] == [worker_id]
    assert listing.json()[0]["running"] is True
    assert listing.json()[0]["active_workers"] == 2
    assert resized.status_code == 200
    assert resized.json()["active_workers"] == 3
