"""Read-only chain queries over the selected JSON-RPC endpoint."""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..providers.rpc import RpcProvider, encode_balance_of, hex_to_int
from .classification import WEI_PER_WCO
from .endpoints import EndpointSelector
from .recovery.strategies import BackoffPolicy, RetryConfig

logger = logging.getLogger(__name__)


class ChainReader:
    """JSON-RPC reads with bounded exponential backoff.

    Each attempt resolves the endpoint again, so a retry after the cached
    endpoint expires re-probes the candidates.
    """

    def __init__(
        self,
        rpc: RpcProvider,
        selector: EndpointSelector,
        policy: Optional[BackoffPolicy] = None,
    ):
        self.rpc = rpc
        self.selector = selector
        self.policy = policy or BackoffPolicy(RetryConfig(max_attempts=3, initial_delay_seconds=1.0))

    async def _call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        async def attempt() -> Any:
            url = await self.selector.resolve()
            return await self.rpc.call(url, method, params)

        return await self.policy.run(attempt, description=method)

    async def get_balance(self, address: str) -> Dict[str, Any]:
        wei = hex_to_int(await self._call("eth_getBalance", [address, "latest"]))
        return {
            "address": address.lower(),
            "balanceWei": str(wei),
            "balance": float(Decimal(wei) / WEI_PER_WCO),
            "endpoint": self.selector.cached.url if self.selector.cached else None,
        }

    async def get_token_balance(self, token_address: str, owner: str, decimals: int = 18) -> Dict[str, Any]:
        raw = await self._call(
            "eth_call",
            [{"to": token_address, "data": encode_balance_of(owner)}, "latest"],
        )
        amount = hex_to_int(raw) if raw not in ("0x", None) else 0
        return {
            "token": token_address.lower(),
            "owner": owner.lower(),
            "raw": str(amount),
            "balance": float(Decimal(amount) / (Decimal(10) ** decimals)),
        }

    async def get_status(self) -> Dict[str, Any]:
        block = hex_to_int(await self._call("eth_blockNumber"))
        chain_id = hex_to_int(await self._call("eth_chainId"))
        gas_price = hex_to_int(await self._call("eth_gasPrice"))
        return {
            "blockNumber": block,
            "chainId": chain_id,
            "gasPriceGwei": float(Decimal(gas_price) / Decimal(10**9)),
            "endpoint": self.selector.cached.url if self.selector.cached else None,
        }
