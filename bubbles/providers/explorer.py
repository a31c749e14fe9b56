"""Blockscout v2 REST client for the W-Chain explorer (scan.w-chain.com)."""

from typing import Any, Dict, Optional

import httpx

from ..config import settings
from ..core.recovery.errors import MalformedResponseError
from .base import HttpProvider


class ExplorerProvider(HttpProvider):
    """Primary explorer API. Every list endpoint returns ``{items, next_page_params}``."""

    name = "w-chain-explorer"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            base_url=base_url or settings.explorer_base_url,
            timeout_s=timeout_s or settings.http_timeout_seconds,
            transport=transport,
        )

    async def health_check(self) -> Dict[str, Any]:
        try:
            stats = await self.get_stats()
            return {"status": "healthy", "total_addresses": stats.get("total_addresses")}
        except Exception as e:
            return {"status": "error", "reason": str(e)}

    @staticmethod
    def _page(data: Any) -> Dict[str, Any]:
        if not isinstance(data, dict) or not isinstance(data.get("items", []), list):
            raise MalformedResponseError("explorer list response has no items array")
        return {"items": data.get("items") or [], "next_page_params": data.get("next_page_params")}

    async def get_addresses_page(
        self,
        items_count: int = 50,
        page_params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """One page of addresses ordered by coin balance."""
        params: Dict[str, Any] = {"items_count": items_count}
        if page_params:
            params.update(page_params)
        return self._page(await self._get_json("/addresses", params))

    async def get_address(self, address: str) -> Dict[str, Any]:
        data = await self._get_json(f"/addresses/{address}")
        if not isinstance(data, dict):
            raise MalformedResponseError("address response is not an object")
        return data

    async def get_address_counters(self, address: str) -> Dict[str, Any]:
        return await self._get_json(f"/addresses/{address}/counters")

    async def get_address_transactions(
        self,
        address: str,
        direction: Optional[str] = None,
        page_params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = dict(page_params or {})
        if direction in ("to", "from"):
            params["filter"] = direction
        return self._page(await self._get_json(f"/addresses/{address}/transactions", params or None))

    async def get_address_tokens(self, address: str, token_type: str = "ERC-20") -> Dict[str, Any]:
        return self._page(await self._get_json(f"/addresses/{address}/tokens", {"type": token_type}))

    async def get_transactions(self, filter_: str = "validated") -> Dict[str, Any]:
        return self._page(await self._get_json("/transactions", {"filter": filter_}))

    async def get_transaction(self, tx_hash: str) -> Dict[str, Any]:
        return await self._get_json(f"/transactions/{tx_hash}")

    async def get_blocks(self, block_type: str = "block") -> Dict[str, Any]:
        return self._page(await self._get_json("/blocks", {"type": block_type}))

    async def get_block(self, block: str) -> Dict[str, Any]:
        return await self._get_json(f"/blocks/{block}")

    async def get_stats(self) -> Dict[str, Any]:
        data = await self._get_json("/stats")
        if not isinstance(data, dict):
            raise MalformedResponseError("stats response is not an object")
        return data

    async def get_tokens(self, query: Optional[str] = None) -> Dict[str, Any]:
        params = {"q": query} if query else None
        return self._page(await self._get_json("/tokens", params))

    async def get_token(self, token_address: str) -> Dict[str, Any]:
        return await self._get_json(f"/tokens/{token_address}")

    async def get_token_holders(self, token_address: str) -> Dict[str, Any]:
        return self._page(await self._get_json(f"/tokens/{token_address}/holders"))

    async def get_smart_contract(self, address: str) -> Dict[str, Any]:
        return await self._get_json(f"/smart-contracts/{address}")


def item_address(item: Dict[str, Any]) -> Optional[str]:
    """Address hash of an explorer ``/addresses`` item."""
    value = item.get("hash") or item.get("address")
    if isinstance(value, dict):
        value = value.get("hash")
    return value.lower() if isinstance(value, str) and value else None


def item_tx_count(item: Dict[str, Any]) -> int:
    raw = item.get("tx_count") or item.get("transaction_count") or item.get("transactions_count") or 0
    try:
        return int(raw)
    except (TypeError, ValueError):
        return 0


def hash_of(party: Any) -> Optional[str]:
    """``from`` / ``to`` fields are objects with a ``hash`` key in Blockscout v2."""
    if isinstance(party, dict):
        party = party.get("hash")
    return party.lower() if isinstance(party, str) else None
