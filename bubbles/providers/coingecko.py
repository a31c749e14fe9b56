from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..core.recovery.errors import MalformedResponseError
from .base import HttpProvider


class CoingeckoProvider(HttpProvider):
    """Coingecko API provider for WCO market data"""

    name = "coingecko"
    timeout_s = 15

    def __init__(
        self,
        base_url: Optional[str] = None,
        coin_id: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(base_url=base_url or settings.coingecko_base_url, transport=transport)
        self.api_key = settings.coingecko_api_key
        self.coin_id = coin_id or settings.coingecko_coin_id

    def _build_headers(self) -> Dict[str, str]:
        headers = super()._build_headers()
        if self.api_key:
            headers["X-CG-Demo-API-Key"] = self.api_key
        return headers

    async def health_check(self) -> Dict[str, Any]:
        try:
            await self._get_json("/ping")
            return {"status": "healthy"}
        except Exception as e:
            return {"status": "error", "reason": str(e)}

    async def get_market_data(self, vs_currency: str = "usd") -> Dict[str, Any]:
        """Price, market cap, volume and supply for WCO."""
        params = {
            "vs_currency": vs_currency,
            "ids": self.coin_id,
            "order": "market_cap_desc",
            "per_page": 1,
            "page": 1,
            "sparkline": "false",
        }
        data = await self._get_json("/coins/markets", params)
        if not isinstance(data, list):
            raise MalformedResponseError("coins/markets response is not a list", provider=self.name)
        if not data:
            return {}

        coin = data[0]
        return {
            "price": coin.get("current_price") or 0,
            "marketCap": coin.get("market_cap") or 0,
            "volume24h": coin.get("total_volume") or 0,
            "circulatingSupply": coin.get("circulating_supply") or 0,
            "priceChange24h": coin.get("price_change_24h") or 0,
            "priceChangePercentage24h": coin.get("price_change_percentage_24h") or 0,
            "high24h": coin.get("high_24h"),
            "low24h": coin.get("low_24h"),
            "lastUpdated": coin.get("last_updated"),
            "_source": {"name": "coingecko", "url": f"https://www.coingecko.com/en/coins/{self.coin_id}"},
        }

    async def get_market_chart(self, days: int = 7, vs_currency: str = "usd") -> List[Dict[str, Any]]:
        data = await self._get_json(
            f"/coins/{self.coin_id}/market_chart",
            {"vs_currency": vs_currency, "days": days},
        )
        prices = data.get("prices") if isinstance(data, dict) else None
        if not isinstance(prices, list):
            raise MalformedResponseError("market_chart response has no prices", provider=self.name)
        return [{"timestamp": int(ts), "price": price} for ts, price in prices]
