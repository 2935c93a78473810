"""FastAPI application factory exposing the broker over HTTP."""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable

from fastapi import FastAPI, Request, Response

from .api.routes import router
from .logging import bind_trace, configure_logging
from .queue import QueueClient, create_queue_client
from .services.broker import MessageBroker
from .settings import Settings, get_settings


BrokerSetup = Callable[[MessageBroker], None]


def create_app(
    settings: Settings | None = None,
    queue: QueueClient | None = None,
    *,
    setup: BrokerSetup | None = None,
) -> FastAPI:
    """Build the HTTP app around a fresh broker.

    Listeners are registered by ``setup``, which runs on startup inside the
    server's event loop; without it the app only sends and calls.
    """

    settings = settings or get_settings()
    configure_logging(settings.log_level)
    broker = MessageBroker(queue or create_queue_client(settings), settings=settings)

    app = FastAPI(title="rdscom broker", version="0.1.0")
    app.state.broker = broker

    @app.on_event("startup")
    async def _startup() -> None:
        if setup is not None:
            setup(broker)

    @app.on_event("shutdown")
    async def _shutdown() -> None:  # pragma: no cover - framework hook
        await broker.stop()

    @app.middleware("http")
    async def inject_request_context(  # pragma: no cover
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request_id = request.headers.get("x-request-id", uuid.uuid4().hex)
        request.state.request_id = request_id
        bind_trace(request_id=request_id)
        response = await call_next(request)
        response.headers["x-request-id"] = request_id
        return response

    app.include_router(router)
    return app
