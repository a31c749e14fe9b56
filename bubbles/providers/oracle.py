from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..core.recovery.errors import MalformedResponseError
from .base import HttpProvider


class OracleProvider(HttpProvider):
    """W-Chain price oracle (WCO / WAVE prices, supply breakdown)."""

    name = "w-chain-oracle"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            base_url=base_url or settings.oracle_base_url,
            timeout_s=timeout_s or settings.http_timeout_seconds,
            transport=transport,
        )

    async def get_price(self, symbol: str) -> Dict[str, Any]:
        data = await self._get_json(f"/price/{symbol.lower()}")
        if not isinstance(data, dict):
            raise MalformedResponseError(f"oracle price for {symbol} is not an object", provider=self.name)
        return data

    async def get_supply_info(self) -> Dict[str, Any]:
        data = await self._get_json("/wco/supply-info")
        if not isinstance(data, dict):
            raise MalformedResponseError("supply info is not an object", provider=self.name)
        return data


class WaveProvider(HttpProvider):
    """WAVE DEX API (pools)."""

    name = "wave-dex"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            base_url=base_url or settings.wave_base_url,
            timeout_s=timeout_s or settings.http_timeout_seconds,
            transport=transport,
        )

    async def get_pools(self) -> List[Dict[str, Any]]:
        data = await self._get_json("/pools")
        if not isinstance(data, dict) or not isinstance(data.get("pools", []), list):
            raise MalformedResponseError("pools response has no pools array", provider=self.name)
        return data.get("pools") or []
