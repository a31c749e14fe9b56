"""
Service wiring for the chat engine.

Builds the providers, stores, resolver, tool executor and orchestrator from
settings once per process. Stores fall back to in-memory implementations when
Supabase is not configured; the orchestrator runs without a model (intent
short-circuits only) when no gateway key is set.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..cache import TTLCache
from ..config import Settings, settings
from ..db.supabase_client import SupabaseClient, get_supabase_client
from ..providers.coingecko import CoingeckoProvider
from ..providers.explorer import ExplorerProvider
from ..providers.graphql import GraphQLProvider
from ..providers.llm import LLMProvider, get_llm_provider
from ..providers.oracle import OracleProvider, WaveProvider
from ..providers.rpc import RpcProvider
from ..stores import (
    ConversationStore,
    InMemoryConversationStore,
    InMemoryKnowledgeStore,
    InMemoryMetricsStore,
    InMemoryWalletCache,
    KnowledgeStore,
    MetricsStore,
    SupabaseConversationStore,
    SupabaseKnowledgeStore,
    SupabaseMetricsStore,
    SupabaseWalletCache,
    WalletCacheStore,
)
from ..types import ChatRequest, ChatResponse
from .agent import ConversationOrchestrator, IntentRouter, ToolDependencies, ToolExecutor, ToolRegistry
from .chain import ChainReader
from .endpoints import EndpointSelector
from .recovery.strategies import BackoffPolicy, RetryConfig
from .resolver import TieredResolver
from .watchlist import WhaleWatcher

_logger = logging.getLogger(__name__)


@dataclass
class Services:
    explorer: ExplorerProvider
    graphql: GraphQLProvider
    selector: EndpointSelector
    chain: ChainReader
    wallet_cache: WalletCacheStore
    conversations: ConversationStore
    knowledge: KnowledgeStore
    metrics: MetricsStore
    resolver: TieredResolver
    executor: ToolExecutor
    orchestrator: ConversationOrchestrator
    llm_provider: Optional[LLMProvider] = None
    supabase: Optional[SupabaseClient] = None

    async def health(self) -> Dict[str, Any]:
        return {
            "rpc": await self.selector.status(),
            "stores": "supabase" if self.supabase else "memory",
            "llm": "configured" if self.llm_provider else "missing",
            "cachedEndpoint": self.selector.cached.url if self.selector.cached else None,
        }


def _build_stores(supabase: Optional[SupabaseClient]):
    if supabase is None:
        _logger.warning("Supabase not configured; using in-memory stores")
        return InMemoryWalletCache(), InMemoryConversationStore(), InMemoryKnowledgeStore(), InMemoryMetricsStore()
    return (
        SupabaseWalletCache(supabase),
        SupabaseConversationStore(supabase),
        SupabaseKnowledgeStore(supabase),
        SupabaseMetricsStore(supabase),
    )


def build_services(
    config: Settings = settings,
    llm_provider: Optional[LLMProvider] = None,
    supabase: Optional[SupabaseClient] = None,
) -> Services:
    """Wire every component from ``config``."""
    supabase = supabase or get_supabase_client()
    wallet_cache, conversations, knowledge, metrics = _build_stores(supabase)

    if llm_provider is None and config.has_llm_key:
        llm_provider = get_llm_provider()
    if llm_provider is None:
        _logger.warning("No LLM gateway key configured; only intent short-circuits will answer")

    explorer = ExplorerProvider()
    graphql = GraphQLProvider()
    rpc = RpcProvider()
    selector = EndpointSelector(
        config.rpc_endpoints,
        rpc.net_version,
        ttl_seconds=config.endpoint_cache_ttl_seconds,
        probe_timeout_seconds=config.endpoint_probe_timeout_seconds,
    )
    chain = ChainReader(
        rpc,
        selector,
        BackoffPolicy(
            RetryConfig(
                max_attempts=config.rpc_retry_attempts,
                initial_delay_seconds=config.rpc_retry_initial_delay_seconds,
            )
        ),
    )
    resolver = TieredResolver.from_settings(config, wallet_cache, graphql, explorer)
    watcher = WhaleWatcher(resolver, explorer)

    registry = ToolRegistry(
        ToolDependencies(
            resolver=resolver,
            explorer=explorer,
            watcher=watcher,
            chain=chain,
            oracle=OracleProvider(),
            wave=WaveProvider(),
            coingecko=CoingeckoProvider(),
            metrics=metrics,
            knowledge=knowledge,
        )
    )
    executor = ToolExecutor(
        registry,
        cache=TTLCache(default_ttl=config.cache_ttl_seconds, max_size=config.max_cache_size),
        timeout_seconds=config.tool_timeout_seconds,
    )
    orchestrator = ConversationOrchestrator.from_settings(
        config,
        llm_provider,
        executor,
        conversations,
        knowledge,
        IntentRouter(executor),
    )

    _logger.info(
        "Chat services initialized (stores=%s, llm=%s, tools=%d)",
        "supabase" if supabase else "memory",
        "gateway" if llm_provider else "none",
        len(registry.names()),
    )
    return Services(
        explorer=explorer,
        graphql=graphql,
        selector=selector,
        chain=chain,
        wallet_cache=wallet_cache,
        conversations=conversations,
        knowledge=knowledge,
        metrics=metrics,
        resolver=resolver,
        executor=executor,
        orchestrator=orchestrator,
        llm_provider=llm_provider,
        supabase=supabase,
    )


_services: Optional[Services] = None


def get_services() -> Services:
    """Process-wide services; used as a FastAPI dependency."""
    global _services
    if _services is None:
        _services = build_services()
    return _services


async def run_chat(request: ChatRequest, services: Optional[Services] = None) -> ChatResponse:
    services = services or get_services()
    turn = await services.orchestrator.process_message(
        session_id=request.session_id,
        message=request.message,
        conversation_id=request.conversation_id,
    )
    return ChatResponse(
        message=turn.message,
        conversation_id=turn.conversation_id,
        model=turn.model,
        rounds=turn.rounds,
        tool_calls=turn.tool_calls,
        short_circuit=turn.short_circuit,
        hit_round_ceiling=turn.hit_round_ceiling,
    )
