"""
Tool Registry and Executor for LLM-driven tool calling.

This module provides the infrastructure for defining, registering, and executing
the W Chain data tools that the model can call. Every tool has a closed name
(``ToolName``), a pydantic argument model, a handler and a cache TTL; the
executor validates arguments, applies the TTL cache and turns every failure
into a ``{error}`` payload the model can read.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Coroutine, Dict, List, Optional, Union

from pydantic import ValidationError

from ...cache import TTLCache
from ...providers.coingecko import CoingeckoProvider
from ...providers.explorer import ExplorerProvider, hash_of, item_tx_count
from ...providers.llm.base import ToolCall, ToolDefinition, ToolResult
from ...providers.oracle import OracleProvider, WaveProvider
from ...stores.knowledge import KnowledgeStore
from ...stores.metrics import MetricsStore
from ..chain import ChainReader
from ..classification import (
    ALL_TIERS,
    BURN_ADDRESSES,
    build_wallet_record,
    classify_wallet,
    find_tier,
    is_large_holder,
    to_decimal,
    wei_to_wco,
)
from ..recovery.errors import DataTimeoutError, UnknownToolError, error_payload
from ..resolver import HolderQueryKind, TieredResolver, distribution, top_holders
from ..watchlist import WhaleWatcher
from .tool_args import (
    TOOL_ARGS,
    AddressArgs,
    BlockArgs,
    CategoryStatsArgs,
    ClassifyWalletArgs,
    DailyMetricsArgs,
    DistributionArgs,
    KnowledgeSearchArgs,
    LeaderboardArgs,
    LimitArgs,
    NoArgs,
    PriceHistoryArgs,
    RecentTransactionsArgs,
    SearchArgs,
    TokenArgs,
    TokenBalanceArgs,
    TokenHoldersArgs,
    ToolArgs,
    ToolName,
    TopHoldersArgs,
    TransactionArgs,
    WalletTokensArgs,
    WalletTransactionsArgs,
    WhaleTransactionsArgs,
    tool_parameters,
)

Handler = Callable[[Any], Coroutine[Any, Any, Any]]

# Cache lifetimes in seconds. Immutable data (mined blocks, verified
# contracts) lives longest, pending transactions shortest.
TTL_HOLDERS = 300
TTL_STATIC = 3600
TTL_BLOCK = 300
TTL_LATEST_BLOCKS = 15
TTL_PENDING = 5
TTL_ADDRESS = 30
TTL_TRANSACTION = 120
TTL_RECENT = 15
TTL_RPC = 15
TTL_MARKET = 60
TTL_HISTORY = 600


@dataclass
class ToolDependencies:
    """Everything the handlers read from."""

    resolver: TieredResolver
    explorer: ExplorerProvider
    watcher: WhaleWatcher
    chain: ChainReader
    oracle: OracleProvider
    wave: WaveProvider
    coingecko: CoingeckoProvider
    metrics: MetricsStore
    knowledge: KnowledgeStore


@dataclass
class RegisteredTool:
    """A tool registered in the registry with its definition and handler."""
    name: ToolName
    definition: ToolDefinition
    handler: Handler
    args_model: type
    ttl_seconds: Optional[float] = None


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def summarize_transaction(tx: Dict[str, Any]) -> Dict[str, Any]:
    """Trim a Blockscout transaction to the fields worth showing the model."""
    fee = tx.get("fee") or {}
    return {
        "hash": tx.get("hash"),
        "from": hash_of(tx.get("from")),
        "to": hash_of(tx.get("to")),
        "value": float(wei_to_wco(tx.get("value"))),
        "fee": float(wei_to_wco(fee.get("value"))) if isinstance(fee, dict) else None,
        "timestamp": tx.get("timestamp"),
        "status": tx.get("status") or tx.get("result"),
        "method": tx.get("method"),
        "block": tx.get("block_number", tx.get("block")),
    }


def summarize_block(block: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "height": block.get("height"),
        "hash": block.get("hash"),
        "timestamp": block.get("timestamp"),
        "transactionCount": block.get("transaction_count", block.get("tx_count")),
        "gasUsed": block.get("gas_used"),
        "gasLimit": block.get("gas_limit"),
        "miner": hash_of(block.get("miner")),
        "size": block.get("size"),
    }


class ToolRegistry:
    """
    Registry of the tools the model can call.

    Each tool has a definition (name, description, JSON schema), an argument
    model and a handler. Handlers return plain JSON-able dicts; a handler
    that cannot answer returns ``{"error": ...}`` or raises, and the
    executor turns either into the same error payload.
    """

    def __init__(self, deps: ToolDependencies, logger: Optional[logging.Logger] = None):
        self.deps = deps
        self._tools: Dict[str, RegisteredTool] = {}
        self.logger = logger or logging.getLogger(__name__)
        self._register_default_tools()

    def register(
        self,
        name: ToolName,
        description: str,
        handler: Handler,
        ttl_seconds: Optional[float] = None,
    ) -> None:
        """Register a tool; its argument model comes from ``TOOL_ARGS``."""
        args_model = TOOL_ARGS[name]
        self._tools[name.value] = RegisteredTool(
            name=name,
            definition=ToolDefinition(
                name=name.value,
                description=description,
                parameters=tool_parameters(args_model),
            ),
            handler=handler,
            args_model=args_model,
            ttl_seconds=ttl_seconds,
        )

    def get_definitions(self) -> List[ToolDefinition]:
        """Get all tool definitions for passing to the LLM."""
        return [tool.definition for tool in self._tools.values()]

    def get_tool(self, name: str) -> Optional[RegisteredTool]:
        """Get a registered tool by name."""
        return self._tools.get(name)

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools

    def names(self) -> List[str]:
        return list(self._tools)

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _register_default_tools(self) -> None:
        """Register the default set of tools."""

        # -- Holders & categories ------------------------------------------
        self.register(
            ToolName.GET_HOLDER_COUNT,
            "Count WCO holders (wallets with a non-zero balance) and all known addresses. "
            "Use for 'how many holders / wallets' questions.",
            self._handle_get_holder_count,
            TTL_HOLDERS,
        )
        self.register(
            ToolName.GET_TOP_HOLDERS,
            "Top WCO holders ranked by balance, optionally restricted to one tier "
            "(Kraken, Whale, Shark, Dolphin, Fish, Octopus, Crab, Shrimp, Plankton, "
            "Flagship, Harbor, Bridge/Wrapped). Use for 'biggest wallets', 'top krakens'.",
            self._handle_get_top_holders,
            TTL_HOLDERS,
        )
        self.register(
            ToolName.GET_HOLDER_DISTRIBUTION,
            "How many wallets fall into each tier, with percentages. "
            "Use for distribution or 'how many whales' questions.",
            self._handle_get_holder_distribution,
            TTL_HOLDERS,
        )
        self.register(
            ToolName.GET_CATEGORY_STATS,
            "Per-tier statistics: wallet count, total, average, min and max balance and "
            "share of all WCO held. Pass a category for a single tier.",
            self._handle_get_category_stats,
            TTL_HOLDERS,
        )
        self.register(
            ToolName.GET_WALLET_LEADERBOARD,
            "The wallet leaderboard shown on the dashboard: ranked wallets with tier, "
            "label and balance, plus the tier breakdown.",
            self._handle_get_wallet_leaderboard,
            TTL_HOLDERS,
        )
        self.register(
            ToolName.GET_TIER_DEFINITIONS,
            "The wallet tier table (names, emojis, balance bands) and the override "
            "tiers for team, exchange and wrapped wallets.",
            self._handle_get_tier_definitions,
            TTL_STATIC,
        )
        self.register(
            ToolName.CLASSIFY_WALLET,
            "Which tier a wallet belongs to. Uses the given balance or looks it up.",
            self._handle_classify_wallet,
            TTL_ADDRESS,
        )
        self.register(
            ToolName.GET_WHALE_TRANSACTIONS,
            "Recent large transfers touching Kraken wallets (5M+ WCO), labelled as sell "
            "pressure, buy pressure, internal move, outflow or inflow.",
            self._handle_get_whale_transactions,
            120,
        )

        # -- Explorer ------------------------------------------------------
        self.register(
            ToolName.GET_WALLET_DETAILS,
            "Balance, tier, label and activity counters of one address.",
            self._handle_get_wallet_details,
            TTL_ADDRESS,
        )
        self.register(
            ToolName.GET_WALLET_TRANSACTIONS,
            "Recent transactions of one address, optionally incoming or outgoing only.",
            self._handle_get_wallet_transactions,
            TTL_ADDRESS,
        )
        self.register(
            ToolName.GET_WALLET_TOKENS,
            "Token balances held by one address.",
            self._handle_get_wallet_tokens,
            60,
        )
        self.register(
            ToolName.GET_TRANSACTION,
            "Details of one transaction by hash.",
            self._handle_get_transaction,
            TTL_TRANSACTION,
        )
        self.register(
            ToolName.GET_RECENT_TRANSACTIONS,
            "Latest validated transactions on W Chain, optionally above a minimum value.",
            self._handle_get_recent_transactions,
            TTL_RECENT,
        )
        self.register(
            ToolName.GET_PENDING_TRANSACTIONS,
            "Transactions currently waiting in the mempool.",
            self._handle_get_pending_transactions,
            TTL_PENDING,
        )
        self.register(
            ToolName.GET_LATEST_BLOCKS,
            "Most recent blocks.",
            self._handle_get_latest_blocks,
            TTL_LATEST_BLOCKS,
        )
        self.register(
            ToolName.GET_BLOCK,
            "One block by number or hash.",
            self._handle_get_block,
            TTL_BLOCK,
        )
        self.register(
            ToolName.GET_NETWORK_STATS,
            "Network statistics: total addresses, blocks, transactions, block time, gas prices.",
            self._handle_get_network_stats,
            TTL_MARKET,
        )
        self.register(
            ToolName.SEARCH_TOKENS,
            "Search tokens deployed on W Chain by name or symbol.",
            self._handle_search_tokens,
            TTL_HOLDERS,
        )
        self.register(
            ToolName.GET_TOKEN_INFO,
            "Metadata and supply of one token contract.",
            self._handle_get_token_info,
            TTL_HOLDERS,
        )
        self.register(
            ToolName.GET_TOKEN_HOLDERS,
            "Largest holders of one token.",
            self._handle_get_token_holders,
            TTL_HOLDERS,
        )
        self.register(
            ToolName.GET_SMART_CONTRACT,
            "Verification status, name and compiler of a smart contract.",
            self._handle_get_smart_contract,
            TTL_STATIC,
        )
        self.register(
            ToolName.GET_BURN_STATS,
            "WCO burned so far and in the last 24 hours, with the change against the day before.",
            self._handle_get_burn_stats,
            TTL_MARKET,
        )

        # -- JSON-RPC ------------------------------------------------------
        self.register(
            ToolName.GET_NATIVE_BALANCE,
            "Live WCO balance of an address read directly from a W Chain RPC node.",
            self._handle_get_native_balance,
            TTL_RPC,
        )
        self.register(
            ToolName.GET_TOKEN_BALANCE,
            "Live balance of one token for one address, read from a W Chain RPC node.",
            self._handle_get_token_balance,
            TTL_RPC,
        )
        self.register(
            ToolName.GET_CHAIN_STATUS,
            "Current block number, chain id and gas price from the RPC node.",
            self._handle_get_chain_status,
            TTL_RPC,
        )

        # -- Market --------------------------------------------------------
        self.register(
            ToolName.GET_WCO_PRICE,
            "Current WCO price from the W Chain price oracle.",
            self._handle_get_wco_price,
            TTL_MARKET,
        )
        self.register(
            ToolName.GET_WAVE_PRICE,
            "Current WAVE price from the W Chain price oracle.",
            self._handle_get_wave_price,
            TTL_MARKET,
        )
        self.register(
            ToolName.GET_SUPPLY_INFO,
            "WCO supply breakdown: total, circulating, locked and burned.",
            self._handle_get_supply_info,
            TTL_HOLDERS,
        )
        self.register(
            ToolName.GET_MARKET_DATA,
            "WCO market data: price, market cap, 24h volume and 24h change.",
            self._handle_get_market_data,
            120,
        )
        self.register(
            ToolName.GET_PRICE_HISTORY,
            "WCO price history over a number of days with start, end, high, low and change.",
            self._handle_get_price_history,
            TTL_HISTORY,
        )
        self.register(
            ToolName.GET_WAVE_POOLS,
            "Liquidity pools on the WAVE DEX.",
            self._handle_get_wave_pools,
            120,
        )

        # -- Stores --------------------------------------------------------
        self.register(
            ToolName.GET_DAILY_METRICS,
            "Daily network snapshots (holders, transactions, volume, burns) for trend questions.",
            self._handle_get_daily_metrics,
            TTL_HISTORY,
        )
        self.register(
            ToolName.SEARCH_KNOWLEDGE_BASE,
            "Search the curated W Chain knowledge base (project facts, tokenomics, FAQs).",
            self._handle_search_knowledge_base,
            TTL_HOLDERS,
        )

    # =========================================================================
    # Tool Handlers
    # =========================================================================

    @staticmethod
    def _unknown_category(category: str) -> Dict[str, Any]:
        return {
            "error": f"unknown category {category!r}",
            "validCategories": [tier.name for tier in ALL_TIERS],
        }

    async def _handle_get_holder_count(self, args: NoArgs) -> Dict[str, Any]:
        return await self.deps.resolver.resolve_holder_query(HolderQueryKind.COUNT)

    async def _handle_get_top_holders(self, args: TopHoldersArgs) -> Dict[str, Any]:
        if args.category and find_tier(args.category) is None:
            return self._unknown_category(args.category)
        return await self.deps.resolver.resolve_holder_query(
            HolderQueryKind.TOP_N,
            {"limit": args.limit, "category": args.category},
        )

    async def _handle_get_holder_distribution(self, args: DistributionArgs) -> Dict[str, Any]:
        return await self.deps.resolver.resolve_holder_query(
            HolderQueryKind.DISTRIBUTION,
            {"includePercentages": args.include_percentages},
        )

    async def _handle_get_category_stats(self, args: CategoryStatsArgs) -> Dict[str, Any]:
        if args.category and find_tier(args.category) is None:
            return self._unknown_category(args.category)
        return await self.deps.resolver.resolve_holder_query(
            HolderQueryKind.CATEGORY_STATS,
            {"category": args.category},
        )

    async def _handle_get_wallet_leaderboard(self, args: LeaderboardArgs) -> Dict[str, Any]:
        if args.category and find_tier(args.category) is None:
            return self._unknown_category(args.category)

        def leaderboard(records):
            board = top_holders(records, args.limit, args.category)
            board["tiers"] = distribution(records, include_percentages=False)["categories"]
            return board

        return await self.deps.resolver.resolve(leaderboard, backfill=True)

    async def _handle_get_tier_definitions(self, args: NoArgs) -> Dict[str, Any]:
        return {"tiers": [tier.to_dict() for tier in ALL_TIERS]}

    async def _handle_classify_wallet(self, args: ClassifyWalletArgs) -> Dict[str, Any]:
        if args.balance is not None:
            balance = to_decimal(args.balance)
            tx_count = 0
        else:
            data = await self.deps.explorer.get_address(args.address)
            balance = wei_to_wco(data.get("coin_balance"))
            tx_count = item_tx_count(data)
        record = build_wallet_record(args.address, balance, tx_count)
        tier = classify_wallet(balance, args.address)
        return {
            **record.to_payload(),
            "tier": tier.to_dict(),
            "isLargeHolder": is_large_holder(balance),
        }

    async def _handle_get_whale_transactions(self, args: WhaleTransactionsArgs) -> Dict[str, Any]:
        return await self.deps.watcher.recent_transactions(
            min_value=to_decimal(args.min_value),
            limit=args.limit,
        )

    async def _handle_get_wallet_details(self, args: AddressArgs) -> Dict[str, Any]:
        explorer = self.deps.explorer
        data, counters = await asyncio.gather(
            explorer.get_address(args.address),
            explorer.get_address_counters(args.address),
        )
        counters = counters if isinstance(counters, dict) else {}
        balance = wei_to_wco(data.get("coin_balance"))
        record = build_wallet_record(
            args.address,
            balance,
            counters.get("transactions_count") or 0,
        )
        return {
            **record.to_payload(),
            "isContract": bool(data.get("is_contract")),
            "isVerified": bool(data.get("is_verified")),
            "name": data.get("name"),
            "tokenTransfersCount": counters.get("token_transfers_count"),
            "gasUsage": counters.get("gas_usage_count"),
            "lastBalanceUpdateBlock": data.get("block_number_balance_updated_at"),
        }

    async def _handle_get_wallet_transactions(self, args: WalletTransactionsArgs) -> Dict[str, Any]:
        page = await self.deps.explorer.get_address_transactions(args.address, direction=args.direction)
        items = page["items"][: args.limit]
        return {
            "address": args.address,
            "direction": args.direction,
            "transactions": [summarize_transaction(tx) for tx in items],
            "hasMore": bool(page.get("next_page_params")) or len(page["items"]) > args.limit,
        }

    async def _handle_get_wallet_tokens(self, args: WalletTokensArgs) -> Dict[str, Any]:
        page = await self.deps.explorer.get_address_tokens(args.address, args.token_type)
        tokens = []
        for item in page["items"]:
            token = item.get("token") or {}
            decimals = int(token.get("decimals") or 0)
            tokens.append({
                "address": hash_of(token.get("address")) or token.get("address_hash"),
                "name": token.get("name"),
                "symbol": token.get("symbol"),
                "balance": float(to_decimal(item.get("value")) / (Decimal(10) ** decimals)),
                "type": token.get("type"),
            })
        return {"address": args.address, "tokenType": args.token_type, "tokens": tokens}

    async def _handle_get_transaction(self, args: TransactionArgs) -> Dict[str, Any]:
        tx = await self.deps.explorer.get_transaction(args.hash)
        summary = summarize_transaction(tx)
        summary["confirmations"] = tx.get("confirmations")
        summary["gasUsed"] = tx.get("gas_used")
        summary["tokenTransfers"] = len(tx.get("token_transfers") or [])
        return summary

    async def _handle_get_recent_transactions(self, args: RecentTransactionsArgs) -> Dict[str, Any]:
        page = await self.deps.explorer.get_transactions("validated")
        transactions = [summarize_transaction(tx) for tx in page["items"]]
        if args.min_value is not None:
            transactions = [tx for tx in transactions if tx["value"] >= args.min_value]
        return {"transactions": transactions[: args.limit], "minValue": args.min_value}

    async def _handle_get_pending_transactions(self, args: LimitArgs) -> Dict[str, Any]:
        page = await self.deps.explorer.get_transactions("pending")
        items = page["items"]
        return {
            "transactions": [summarize_transaction(tx) for tx in items[: args.limit]],
            "pendingCount": len(items),
        }

    async def _handle_get_latest_blocks(self, args: LimitArgs) -> Dict[str, Any]:
        page = await self.deps.explorer.get_blocks()
        return {"blocks": [summarize_block(b) for b in page["items"][: args.limit]]}

    async def _handle_get_block(self, args: BlockArgs) -> Dict[str, Any]:
        return summarize_block(await self.deps.explorer.get_block(args.block.strip()))

    async def _handle_get_network_stats(self, args: NoArgs) -> Dict[str, Any]:
        stats = await self.deps.explorer.get_stats()
        return {
            "totalAddresses": stats.get("total_addresses"),
            "totalBlocks": stats.get("total_blocks"),
            "totalTransactions": stats.get("total_transactions"),
            "transactionsToday": stats.get("transactions_today"),
            "averageBlockTimeMs": stats.get("average_block_time"),
            "gasPrices": stats.get("gas_prices"),
            "networkUtilization": stats.get("network_utilization_percentage"),
            "coinPrice": stats.get("coin_price"),
            "marketCap": stats.get("market_cap"),
        }

    async def _handle_search_tokens(self, args: SearchArgs) -> Dict[str, Any]:
        page = await self.deps.explorer.get_tokens(args.query)
        return {
            "query": args.query,
            "tokens": [
                {
                    "address": item.get("address") or item.get("address_hash"),
                    "name": item.get("name"),
                    "symbol": item.get("symbol"),
                    "type": item.get("type"),
                    "holders": item.get("holders") or item.get("holders_count"),
                }
                for item in page["items"][:20]
            ],
        }

    async def _handle_get_token_info(self, args: TokenArgs) -> Dict[str, Any]:
        token = await self.deps.explorer.get_token(args.token_address)
        decimals = int(token.get("decimals") or 0)
        supply = token.get("total_supply")
        return {
            "address": args.token_address,
            "name": token.get("name"),
            "symbol": token.get("symbol"),
            "decimals": decimals,
            "type": token.get("type"),
            "totalSupply": float(to_decimal(supply) / (Decimal(10) ** decimals)) if supply else None,
            "holders": token.get("holders") or token.get("holders_count"),
            "exchangeRate": token.get("exchange_rate"),
        }

    async def _handle_get_token_holders(self, args: TokenHoldersArgs) -> Dict[str, Any]:
        page = await self.deps.explorer.get_token_holders(args.token_address)
        holders = []
        for item in page["items"][: args.limit]:
            decimals = int((item.get("token") or {}).get("decimals") or 0)
            holders.append({
                "address": hash_of(item.get("address")),
                "balance": float(to_decimal(item.get("value")) / (Decimal(10) ** decimals)),
            })
        return {"token": args.token_address, "holders": holders}

    async def _handle_get_smart_contract(self, args: AddressArgs) -> Dict[str, Any]:
        contract = await self.deps.explorer.get_smart_contract(args.address)
        return {
            "address": args.address,
            "name": contract.get("name"),
            "isVerified": bool(contract.get("is_verified")),
            "language": contract.get("language"),
            "compilerVersion": contract.get("compiler_version"),
            "optimizationEnabled": contract.get("optimization_enabled"),
            "verifiedAt": contract.get("verified_at"),
            "abiEntries": len(contract.get("abi") or []),
        }

    async def _handle_get_burn_stats(self, args: NoArgs) -> Dict[str, Any]:
        burn_address = BURN_ADDRESSES[-1]
        explorer = self.deps.explorer
        data, page = await asyncio.gather(
            explorer.get_address(burn_address),
            explorer.get_address_transactions(burn_address, direction="to"),
        )

        now = self._now()
        last_day = Decimal(0)
        previous_day = Decimal(0)
        for tx in page["items"]:
            ts = _parse_timestamp(tx.get("timestamp"))
            if ts is None:
                continue
            amount = wei_to_wco(tx.get("value"))
            if ts >= now - timedelta(hours=24):
                last_day += amount
            elif ts >= now - timedelta(hours=48):
                previous_day += amount

        change = None
        if previous_day > 0:
            change = float(round((last_day - previous_day) * 100 / previous_day, 2))
        return {
            "burnAddress": burn_address,
            "totalBurned": float(wei_to_wco(data.get("coin_balance"))),
            "burned24h": float(last_day),
            "burnedPrevious24h": float(previous_day),
            "change24hPercent": change,
        }

    async def _handle_get_native_balance(self, args: AddressArgs) -> Dict[str, Any]:
        return await self.deps.chain.get_balance(args.address)

    async def _handle_get_token_balance(self, args: TokenBalanceArgs) -> Dict[str, Any]:
        return await self.deps.chain.get_token_balance(args.token_address, args.address, args.decimals)

    async def _handle_get_chain_status(self, args: NoArgs) -> Dict[str, Any]:
        return await self.deps.chain.get_status()

    async def _handle_get_wco_price(self, args: NoArgs) -> Dict[str, Any]:
        return {"symbol": "WCO", **await self.deps.oracle.get_price("wco")}

    async def _handle_get_wave_price(self, args: NoArgs) -> Dict[str, Any]:
        return {"symbol": "WAVE", **await self.deps.oracle.get_price("wave")}

    async def _handle_get_supply_info(self, args: NoArgs) -> Dict[str, Any]:
        return await self.deps.oracle.get_supply_info()

    async def _handle_get_market_data(self, args: NoArgs) -> Dict[str, Any]:
        data = await self.deps.coingecko.get_market_data()
        if not data:
            return {"error": "no market data for WCO"}
        return data

    async def _handle_get_price_history(self, args: PriceHistoryArgs) -> Dict[str, Any]:
        points = await self.deps.coingecko.get_market_chart(days=args.days)
        if not points:
            return {"error": "no price history available"}
        prices = [p["price"] for p in points]
        start, end = prices[0], prices[-1]
        return {
            "days": args.days,
            "start": start,
            "end": end,
            "high": max(prices),
            "low": min(prices),
            "changePercent": round((end - start) * 100 / start, 2) if start else None,
            # Full series is large; keep roughly one point per day.
            "points": points[:: max(len(points) // max(args.days, 1), 1)],
        }

    async def _handle_get_wave_pools(self, args: LimitArgs) -> Dict[str, Any]:
        pools = await self.deps.wave.get_pools()
        return {"pools": pools[: args.limit], "total": len(pools)}

    async def _handle_get_daily_metrics(self, args: DailyMetricsArgs) -> Dict[str, Any]:
        rows = await self.deps.metrics.recent(args.days)
        if not rows:
            return {"error": "no daily metrics recorded"}
        return {"days": args.days, "metrics": [row.model_dump(mode="json") for row in rows]}

    async def _handle_search_knowledge_base(self, args: KnowledgeSearchArgs) -> Dict[str, Any]:
        entries = await self.deps.knowledge.search(args.query, args.limit)
        return {
            "query": args.query,
            "entries": [
                {"title": e.title, "category": e.category, "content": e.content}
                for e in entries
            ],
        }


class ToolExecutor:
    """
    Executes tool calls requested by the LLM.

    Supports parallel execution of independent tool calls. No handler
    exception escapes: unknown names, invalid arguments, timeouts and
    upstream failures all come back as a ``ToolResult`` with an error.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        cache: Optional[TTLCache] = None,
        timeout_seconds: float = 30.0,
        logger: Optional[logging.Logger] = None,
    ):
        self.registry = registry
        self.cache = cache
        self.timeout_seconds = timeout_seconds
        self.logger = logger or logging.getLogger(__name__)

    @staticmethod
    def _cache_key(name: str, args: ToolArgs) -> str:
        return f"tool:{name}:{json.dumps(args.model_dump(by_alias=True), sort_keys=True, default=str)}"

    async def execute(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Any:
        """Run one tool by name and return its result or ``{error}`` payload."""
        result = await self.execute_single(ToolCall(id=f"direct-{name}", name=name, arguments=arguments or {}))
        return result.payload()

    async def execute_single(self, tool_call: ToolCall) -> ToolResult:
        """Execute a single tool call and return the result."""
        tool = self.registry.get_tool(tool_call.name)

        if not tool:
            self.logger.warning(f"Model requested unknown tool {tool_call.name!r}")
            return self._failure(tool_call, UnknownToolError(tool_call.name))

        try:
            args = tool.args_model.model_validate(tool_call.arguments or {})
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}" for err in e.errors()
            )
            return ToolResult(
                tool_call_id=tool_call.id,
                name=tool_call.name,
                result={"error": f"invalid arguments: {problems}", "category": "malformed"},
                error=f"invalid arguments: {problems}",
            )

        cache_key = self._cache_key(tool.name.value, args)
        if self.cache is not None and tool.ttl_seconds:
            cached = await self.cache.get(cache_key)
            if cached is not None:
                self.logger.debug("Tool cache hit for %s", tool_call.name)
                return ToolResult(tool_call_id=tool_call.id, name=tool_call.name, result=cached)

        try:
            result = await asyncio.wait_for(tool.handler(args), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            self.logger.warning(f"Tool {tool_call.name} timed out after {self.timeout_seconds}s")
            return self._failure(tool_call, DataTimeoutError(f"{tool_call.name} timed out"))
        except Exception as e:
            self.logger.error(f"Tool execution error for {tool_call.name}: {e}")
            return self._failure(tool_call, e)

        if isinstance(result, dict) and result.get("error"):
            return ToolResult(
                tool_call_id=tool_call.id,
                name=tool_call.name,
                result=result,
                error=str(result["error"]),
            )

        if self.cache is not None and tool.ttl_seconds:
            await self.cache.set(cache_key, result, tool.ttl_seconds)
        return ToolResult(tool_call_id=tool_call.id, name=tool_call.name, result=result)

    @staticmethod
    def _failure(tool_call: ToolCall, error: BaseException) -> ToolResult:
        payload = error_payload(error)
        return ToolResult(
            tool_call_id=tool_call.id,
            name=tool_call.name,
            result=payload,
            error=payload["error"],
        )

    async def execute_parallel(self, tool_calls: List[ToolCall]) -> List[ToolResult]:
        """Execute multiple tool calls in parallel; all settle before returning."""
        if not tool_calls:
            return []

        tasks = [self.execute_single(tc) for tc in tool_calls]
        results: List[Union[ToolResult, Exception]] = await asyncio.gather(*tasks, return_exceptions=True)

        # Convert any exceptions to ToolResults
        final_results = []
        for i, result in enumerate(results):
            if isinstance(result, Exception):
                final_results.append(self._failure(tool_calls[i], result))
            else:
                final_results.append(result)

        return final_results
