from .conversations import Conversation, DailyMetric, KnowledgeEntry, StoredMessage
from .requests import ChatRequest, FeedbackRequest, ToolRunRequest
from .responses import ChatResponse, FeedbackResponse, HolderQueryResponse, SessionClearedResponse
from .wallets import WalletRecord

__all__ = [
    "Conversation",
    "DailyMetric",
    "KnowledgeEntry",
    "StoredMessage",
    "ChatRequest",
    "FeedbackRequest",
    "ToolRunRequest",
    "ChatResponse",
    "FeedbackResponse",
    "HolderQueryResponse",
    "SessionClearedResponse",
    "WalletRecord",
]
