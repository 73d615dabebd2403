"""HTTP client for the battle completion worker service."""

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class WorkerServiceError(RuntimeError):
    """Worker returned an error response."""


class WorkerServiceClient:
    """Calls the worker's /health, /status and /trigger endpoints."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        )

    async def _make_request(self, endpoint: str, method: str = "GET") -> dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key

        async with self._client() as client:
            response = await client.request(method, endpoint, headers=headers)

        if response.is_error:
            raise WorkerServiceError(
                f"Worker service error: {response.status_code} {response.text}"
            )
        return response.json()

    async def get_health(self) -> dict[str, Any]:
        """Worker health (no API key required)."""
        async with self._client() as client:
            response = await client.get("/health")
        if response.is_error:
            raise WorkerServiceError(f"Health check failed: {response.status_code}")
        return response.json()

    async def get_status(self) -> dict[str, Any]:
        return await self._make_request("/status")

    async def trigger_check(self) -> dict[str, Any]:
        return await self._make_request("/trigger", "POST")

    async def is_healthy(self) -> bool:
        try:
            health = await self.get_health()
        except (httpx.HTTPError, WorkerServiceError, ValueError) as e:
            logger.error(f"Worker health check failed: {e}")
            return False
        return bool(health.get("isRunning") and health.get("battleManagerInitialized"))
