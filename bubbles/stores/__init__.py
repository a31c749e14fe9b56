from .conversations import ConversationStore, InMemoryConversationStore, SupabaseConversationStore
from .knowledge import InMemoryKnowledgeStore, KnowledgeStore, SupabaseKnowledgeStore, format_knowledge
from .metrics import InMemoryMetricsStore, MetricsStore, SupabaseMetricsStore
from .wallet_cache import InMemoryWalletCache, SupabaseWalletCache, WalletCacheStore

__all__ = [
    "ConversationStore",
    "InMemoryConversationStore",
    "SupabaseConversationStore",
    "KnowledgeStore",
    "InMemoryKnowledgeStore",
    "SupabaseKnowledgeStore",
    "format_knowledge",
    "MetricsStore",
    "InMemoryMetricsStore",
    "SupabaseMetricsStore",
    "WalletCacheStore",
    "InMemoryWalletCache",
    "SupabaseWalletCache",
]
