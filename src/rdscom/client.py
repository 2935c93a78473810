"""Async HTTP client for services that talk to a remote broker."""

from __future__ import annotations

from typing import Any

import httpx

from .errors import BrokerError, QueueError, RPCTimeoutError
from .models import WorkerStats

DEFAULT_BASE_URL = "http://127.0.0.1:8000"


class BrokerHTTPClient:
    """Thin async wrapper around the broker's /v1 endpoints."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60.0,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "BrokerHTTPClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send(self, channel: str, message: str, trace_id: str | None = None) -> str:
        """Queue ``message`` on ``channel`` and return its trace id."""

        payload: dict[str, Any] = {"message": message}
        if trace_id:
            payload["trace_id"] = trace_id
        response = await self._client.post(f"/v1/channels/{channel}/messages", json=payload)
        data = _json_or_raise(response)
        return data["trace_id"]

    async def request(
        self,
        channel: str,
        message: str,
        *,
        trace_id: str | None = None,
        timeout_seconds: float | None = None,
    ) -> str:
        """Perform an RPC call through the broker and return the response text."""

        payload: dict[str, Any] = {"message": message}
        if trace_id:
            payload["trace_id"] = trace_id
        if timeout_seconds is not None:
            payload["timeout_seconds"] = timeout_seconds
        response = await self._client.post(f"/v1/channels/{channel}/rpc", json=payload)
        data = _json_or_raise(response, timeout_seconds=timeout_seconds)
        return data["message"]

    async def worker_stats(self) -> dict[str, WorkerStats]:
        response = await self._client.get("/v1/workers")
        return {
            entry["worker_id"]: WorkerStats(
                active_workers=entry["active_workers"], worklimit=entry["worklimit"]
            )
            for entry in _json_or_raise(response)
        }

    async def set_worklimit(self, worker_id: str, worklimit: int) -> WorkerStats:
        response = await self._client.patch(
            f"/v1/workers/{worker_id}", json={"worklimit": worklimit}
        )
        entry = _json_or_raise(response)
        return WorkerStats(active_workers=entry["active_workers"], worklimit=entry["worklimit"])


def _json_or_raise(response: httpx.Response, *, timeout_seconds: float | None = None) -> Any:
    if response.is_success:
        return response.json()

    error = _error_detail(response)
    message = error.get("message") or f"Broker returned HTTP {response.status_code}"
    code = error.get("code")
    if code == "rpc_timeout":
        raise RPCTimeoutError(
            error.get("timeout_seconds") or timeout_seconds or 0,
            correlation_id=error.get("correlation_id"),
            message=error.get("message"),
        )
    if code == "queue_unavailable":
        raise QueueError(message)
    raise BrokerError(message)


def _error_detail(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, dict) and isinstance(detail.get("error"), dict):
        return detail["error"]
    return {}
