"""
Tool names and argument models.

The tool set is closed: ``ToolName`` lists every tool the model may call and
``TOOL_ARGS`` maps each one to the pydantic model its arguments are validated
against before dispatch. Argument names are camelCase on the wire, matching
what the dashboard and the model already use.
"""

import re
from enum import Enum
from typing import Any, Dict, Literal, Optional, Type, Union, get_args, get_origin

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
TX_HASH_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")


class ToolName(str, Enum):
    # Holders & categories
    GET_HOLDER_COUNT = "getHolderCount"
    GET_TOP_HOLDERS = "getTopHolders"
    GET_HOLDER_DISTRIBUTION = "getHolderDistribution"
    GET_CATEGORY_STATS = "getCategoryStats"
    GET_WALLET_LEADERBOARD = "getWalletLeaderboard"
    GET_TIER_DEFINITIONS = "getTierDefinitions"
    CLASSIFY_WALLET = "classifyWallet"
    GET_WHALE_TRANSACTIONS = "getWhaleTransactions"
    # Explorer
    GET_WALLET_DETAILS = "getWalletDetails"
    GET_WALLET_TRANSACTIONS = "getWalletTransactions"
    GET_WALLET_TOKENS = "getWalletTokens"
    GET_TRANSACTION = "getTransaction"
    GET_RECENT_TRANSACTIONS = "getRecentTransactions"
    GET_PENDING_TRANSACTIONS = "getPendingTransactions"
    GET_LATEST_BLOCKS = "getLatestBlocks"
    GET_BLOCK = "getBlock"
    GET_NETWORK_STATS = "getNetworkStats"
    SEARCH_TOKENS = "searchTokens"
    GET_TOKEN_INFO = "getTokenInfo"
    GET_TOKEN_HOLDERS = "getTokenHolders"
    GET_SMART_CONTRACT = "getSmartContract"
    GET_BURN_STATS = "getBurnStats"
    # JSON-RPC
    GET_NATIVE_BALANCE = "getNativeBalance"
    GET_TOKEN_BALANCE = "getTokenBalance"
    GET_CHAIN_STATUS = "getChainStatus"
    # Market
    GET_WCO_PRICE = "getWcoPrice"
    GET_WAVE_PRICE = "getWavePrice"
    GET_SUPPLY_INFO = "getSupplyInfo"
    GET_MARKET_DATA = "getMarketData"
    GET_PRICE_HISTORY = "getPriceHistory"
    GET_WAVE_POOLS = "getWavePools"
    # Stores
    GET_DAILY_METRICS = "getDailyMetrics"
    SEARCH_KNOWLEDGE_BASE = "searchKnowledgeBase"


class ToolArgs(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class NoArgs(ToolArgs):
    pass


class AddressArgs(ToolArgs):
    address: str = Field(description="W Chain wallet or contract address (0x...)")

    @field_validator("address")
    @classmethod
    def _check_address(cls, value: str) -> str:
        value = value.strip()
        if not ADDRESS_RE.match(value):
            raise ValueError("address must be 0x followed by 40 hex characters")
        return value.lower()


class TopHoldersArgs(ToolArgs):
    limit: int = Field(default=10, ge=1, le=100, description="Number of holders to return")
    category: Optional[str] = Field(
        default=None,
        description="Restrict to one tier, e.g. Kraken, Whale, Shark, Flagship, Harbor",
    )


class LeaderboardArgs(ToolArgs):
    limit: int = Field(default=50, ge=1, le=500, description="Number of wallets to return")
    category: Optional[str] = Field(default=None, description="Optional tier filter")


class DistributionArgs(ToolArgs):
    include_percentages: bool = Field(default=True, description="Include each tier's share of all wallets")


class CategoryStatsArgs(ToolArgs):
    category: Optional[str] = Field(default=None, description="Tier name; omit for every tier")


class ClassifyWalletArgs(AddressArgs):
    balance: Optional[float] = Field(
        default=None,
        ge=0,
        allow_inf_nan=False,
        description="Balance in WCO; looked up on the explorer when omitted",
    )


class WhaleTransactionsArgs(ToolArgs):
    min_value: float = Field(default=1_000_000, ge=0, description="Minimum transfer size in WCO")
    limit: int = Field(default=20, ge=1, le=100, description="Number of transfers to return")


class WalletTransactionsArgs(AddressArgs):
    direction: Optional[Literal["to", "from"]] = Field(
        default=None,
        description="'to' for incoming only, 'from' for outgoing only",
    )
    limit: int = Field(default=20, ge=1, le=50, description="Number of transactions to return")


class WalletTokensArgs(AddressArgs):
    token_type: Literal["ERC-20", "ERC-721", "ERC-1155"] = Field(default="ERC-20", description="Token standard")


class TransactionArgs(ToolArgs):
    hash: str = Field(description="Transaction hash (0x + 64 hex characters)")

    @field_validator("hash")
    @classmethod
    def _check_hash(cls, value: str) -> str:
        value = value.strip()
        if not TX_HASH_RE.match(value):
            raise ValueError("hash must be 0x followed by 64 hex characters")
        return value.lower()


class RecentTransactionsArgs(ToolArgs):
    limit: int = Field(default=20, ge=1, le=50, description="Number of transactions to return")
    min_value: Optional[float] = Field(default=None, ge=0, description="Only transfers of at least this many WCO")


class LimitArgs(ToolArgs):
    limit: int = Field(default=10, ge=1, le=50, description="Number of items to return")


class BlockArgs(ToolArgs):
    block: str = Field(description="Block number or block hash")


class SearchArgs(ToolArgs):
    query: str = Field(min_length=1, description="Name, symbol or address to search for")


class TokenArgs(ToolArgs):
    token_address: str = Field(description="Token contract address")

    @field_validator("token_address")
    @classmethod
    def _check_token(cls, value: str) -> str:
        value = value.strip()
        if not ADDRESS_RE.match(value):
            raise ValueError("tokenAddress must be 0x followed by 40 hex characters")
        return value.lower()


class TokenHoldersArgs(TokenArgs):
    limit: int = Field(default=20, ge=1, le=50, description="Number of holders to return")


class TokenBalanceArgs(TokenArgs):
    address: str = Field(description="Owner address")
    decimals: int = Field(default=18, ge=0, le=36, description="Token decimals")

    @field_validator("address")
    @classmethod
    def _check_owner(cls, value: str) -> str:
        value = value.strip()
        if not ADDRESS_RE.match(value):
            raise ValueError("address must be 0x followed by 40 hex characters")
        return value.lower()


class PriceHistoryArgs(ToolArgs):
    days: int = Field(default=7, ge=1, le=365, description="History window in days")


class DailyMetricsArgs(ToolArgs):
    days: int = Field(default=7, ge=1, le=90, description="Number of daily snapshots")


class KnowledgeSearchArgs(ToolArgs):
    query: str = Field(min_length=1, description="What to look up")
    limit: int = Field(default=5, ge=1, le=20, description="Maximum entries")


TOOL_ARGS: Dict[ToolName, Type[ToolArgs]] = {
    ToolName.GET_HOLDER_COUNT: NoArgs,
    ToolName.GET_TOP_HOLDERS: TopHoldersArgs,
    ToolName.GET_HOLDER_DISTRIBUTION: DistributionArgs,
    ToolName.GET_CATEGORY_STATS: CategoryStatsArgs,
    ToolName.GET_WALLET_LEADERBOARD: LeaderboardArgs,
    ToolName.GET_TIER_DEFINITIONS: NoArgs,
    ToolName.CLASSIFY_WALLET: ClassifyWalletArgs,
    ToolName.GET_WHALE_TRANSACTIONS: WhaleTransactionsArgs,
    ToolName.GET_WALLET_DETAILS: AddressArgs,
    ToolName.GET_WALLET_TRANSACTIONS: WalletTransactionsArgs,
    ToolName.GET_WALLET_TOKENS: WalletTokensArgs,
    ToolName.GET_TRANSACTION: TransactionArgs,
    ToolName.GET_RECENT_TRANSACTIONS: RecentTransactionsArgs,
    ToolName.GET_PENDING_TRANSACTIONS: LimitArgs,
    ToolName.GET_LATEST_BLOCKS: LimitArgs,
    ToolName.GET_BLOCK: BlockArgs,
    ToolName.GET_NETWORK_STATS: NoArgs,
    ToolName.SEARCH_TOKENS: SearchArgs,
    ToolName.GET_TOKEN_INFO: TokenArgs,
    ToolName.GET_TOKEN_HOLDERS: TokenHoldersArgs,
    ToolName.GET_SMART_CONTRACT: AddressArgs,
    ToolName.GET_BURN_STATS: NoArgs,
    ToolName.GET_NATIVE_BALANCE: AddressArgs,
    ToolName.GET_TOKEN_BALANCE: TokenBalanceArgs,
    ToolName.GET_CHAIN_STATUS: NoArgs,
    ToolName.GET_WCO_PRICE: NoArgs,
    ToolName.GET_WAVE_PRICE: NoArgs,
    ToolName.GET_SUPPLY_INFO: NoArgs,
    ToolName.GET_MARKET_DATA: NoArgs,
    ToolName.GET_PRICE_HISTORY: PriceHistoryArgs,
    ToolName.GET_WAVE_POOLS: LimitArgs,
    ToolName.GET_DAILY_METRICS: DailyMetricsArgs,
    ToolName.SEARCH_KNOWLEDGE_BASE: KnowledgeSearchArgs,
}


# ============================================================================
# JSON schema for the model
# ============================================================================


def _schema_for(annotation: Any) -> Dict[str, Any]:
    origin = get_origin(annotation)
    if origin is Union:
        members = [a for a in get_args(annotation) if a is not type(None)]
        return _schema_for(members[0])
    if origin is Literal:
        return {"type": "string", "enum": list(get_args(annotation))}
    if isinstance(annotation, type) and issubclass(annotation, Enum):
        return {"type": "string", "enum": [m.value for m in annotation]}
    if annotation is bool:
        return {"type": "boolean"}
    if annotation is int:
        return {"type": "integer"}
    if annotation is float:
        return {"type": "number"}
    return {"type": "string"}


def tool_parameters(model: Type[ToolArgs]) -> Dict[str, Any]:
    """Flat JSON schema for a tool's arguments.

    Built by hand rather than with ``model_json_schema`` so optional fields
    come out as plain types instead of ``anyOf`` unions, which not every
    gateway model accepts.
    """
    properties: Dict[str, Any] = {}
    required = []
    for name, field in model.model_fields.items():
        key = field.alias or to_camel(name)
        prop = _schema_for(field.annotation)
        if field.description:
            prop["description"] = field.description
        for constraint in field.metadata:
            if getattr(constraint, "ge", None) is not None:
                prop["minimum"] = constraint.ge
            if getattr(constraint, "le", None) is not None:
                prop["maximum"] = constraint.le
        if field.is_required():
            required.append(key)
        elif field.default is not None:
            prop["default"] = field.default
        properties[key] = prop

    schema: Dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema
