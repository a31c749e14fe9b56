"""Minimal JSON-RPC client for W-Chain nodes."""

import itertools
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..core.recovery.errors import BubblesError, MalformedResponseError
from .base import HttpProvider


class JsonRpcError(BubblesError):
    """Node answered with a JSON-RPC ``error`` object."""

    recoverable = False

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message, provider="json-rpc", details={"code": code})
        self.code = code


class RpcProvider(HttpProvider):
    """Posts JSON-RPC 2.0 requests to an explicit endpoint URL.

    The provider has no notion of a current endpoint; the endpoint selector
    decides which URL to call.
    """

    name = "json-rpc"

    def __init__(
        self,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(base_url="", timeout_s=timeout_s or settings.http_timeout_seconds, transport=transport)
        self._ids = itertools.count(1)

    def _build_headers(self) -> Dict[str, str]:
        return {"Accept": "application/json", "Content-Type": "application/json"}

    async def ready(self) -> bool:
        return bool(settings.rpc_endpoints)

    async def call(self, url: str, method: str, params: Optional[List[Any]] = None) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params or []}
        body = await self._post_json(url, payload)
        if not isinstance(body, dict):
            raise MalformedResponseError("JSON-RPC response is not an object", provider=self.name)
        if body.get("error"):
            error = body["error"]
            if isinstance(error, dict):
                raise JsonRpcError(str(error.get("message", "JSON-RPC error")), error.get("code"))
            raise JsonRpcError(str(error))
        if "result" not in body:
            raise MalformedResponseError("JSON-RPC response has no result", provider=self.name)
        return body["result"]

    async def net_version(self, url: str) -> str:
        """Liveness probe: the network id of the node."""
        return str(await self.call(url, "net_version"))


def hex_to_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    if not isinstance(value, str) or not value.startswith("0x"):
        raise MalformedResponseError(f"expected hex quantity, got {value!r}")
    return int(value, 16)


ERC20_BALANCE_OF = "0x70a08231"


def encode_balance_of(owner: str) -> str:
    """Calldata for ``balanceOf(address)``."""
    return ERC20_BALANCE_OF + owner.lower().replace("0x", "").rjust(64, "0")
