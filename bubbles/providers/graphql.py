"""Blockscout GraphQL client (secondary query API)."""

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..core.recovery.errors import MalformedResponseError, UnavailableError
from .base import HttpProvider

logger = logging.getLogger(__name__)


INTROSPECTION_QUERY = """
query IntrospectionQuery {
  __schema {
    types {
      name
    }
  }
}
"""

TOP_ADDRESSES_QUERY = """
query GetTopAddresses($addressLimit: Int!) {
  addresses(first: $addressLimit, orderBy: COIN_BALANCE_DESC) {
    items {
      hash
      coinBalance
      transactionsCount
    }
    totalCount
  }
}
"""


class GraphQLProvider(HttpProvider):
    name = "w-chain-graphql"

    def __init__(
        self,
        url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            base_url=url or settings.graphql_url,
            timeout_s=timeout_s or settings.http_timeout_seconds,
            transport=transport,
        )

    async def query(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        body = await self._post_json(self.base_url, {"query": query, "variables": variables or {}})
        if not isinstance(body, dict):
            raise MalformedResponseError("GraphQL response is not an object", provider=self.name)
        errors = body.get("errors")
        if errors:
            messages = ", ".join(str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors)
            raise UnavailableError(f"GraphQL errors: {messages}", provider=self.name)
        data = body.get("data")
        if not isinstance(data, dict):
            raise MalformedResponseError("No data returned from GraphQL query", provider=self.name)
        return data

    async def test_connection(self) -> bool:
        """Lightweight introspection probe; never raises."""
        try:
            await self.query(INTROSPECTION_QUERY)
            return True
        except Exception as e:
            logger.info("GraphQL connectivity probe failed: %s", e)
            return False

    async def health_check(self) -> Dict[str, Any]:
        return {"status": "healthy" if await self.test_connection() else "unavailable"}

    async def get_top_addresses(self, limit: int = 5000) -> List[Dict[str, Any]]:
        """Up to ``limit`` address items ``{hash, coinBalance, transactionsCount}``, richest first."""
        data = await self.query(TOP_ADDRESSES_QUERY, {"addressLimit": limit})
        addresses = data.get("addresses")
        if not isinstance(addresses, dict) or not isinstance(addresses.get("items"), list):
            raise MalformedResponseError("GraphQL addresses payload has no items", provider=self.name)
        return addresses["items"]
