from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from ..core.recovery.errors import DataTimeoutError, MalformedResponseError, RateLimitedError


class Provider(ABC):
    """Base provider interface"""

    name: str
    timeout_s: float = 10

    @abstractmethod
    async def ready(self) -> bool:
        """Check if provider is ready to serve requests"""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Return provider health status"""
        pass


class HttpProvider(Provider):
    """Provider backed by a JSON HTTP API.

    ``transport`` lets callers (and tests) swap the network layer, e.g. an
    ``httpx.MockTransport``.
    """

    base_url: str = ""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if base_url is not None:
            self.base_url = base_url.rstrip("/")
        if timeout_s is not None:
            self.timeout_s = timeout_s
        self._transport = transport

    def _build_headers(self) -> Dict[str, str]:
        return {"Accept": "application/json"}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout_s,
            headers=self._build_headers(),
            transport=self._transport,
        )

    async def ready(self) -> bool:
        return bool(self.base_url)

    async def health_check(self) -> Dict[str, Any]:
        return {"status": "configured" if await self.ready() else "unavailable", "base_url": self.base_url}

    async def _request_json(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        """Issue one request and decode JSON, mapping failures onto the error taxonomy."""
        target = url if url.startswith("http") else f"{self.base_url}{url}"
        try:
            async with self._client() as client:
                response = await client.request(method, target, params=params, json=json)
        except httpx.TimeoutException as exc:
            raise DataTimeoutError(f"{self.name} request timed out", provider=self.name) from exc

        if response.status_code == 429:
            raise RateLimitedError(f"{self.name} rate limit exceeded", provider=self.name)
        response.raise_for_status()

        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponseError(f"{self.name} returned non-JSON body", provider=self.name) from exc

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._request_json("GET", path, params=params)

    async def _post_json(self, path: str, payload: Any) -> Any:
        return await self._request_json("POST", path, json=payload)
