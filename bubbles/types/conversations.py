import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StoredMessage(BaseModel):
    """Individual message in a conversation"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    conversation_id: str
    role: str = Field(description="Message role: user or assistant")
    content: str = Field(description="Message content")
    timestamp: datetime = Field(default_factory=utcnow)
    tool_calls: Optional[List[Dict[str, Any]]] = Field(default=None, description="Tool calls executed for this answer")
    tool_results: Optional[List[Dict[str, Any]]] = Field(default=None, description="Results of those tool calls")
    feedback: Optional[str] = Field(default=None, description="positive / negative marker")


class Conversation(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    session_id: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    messages: List[StoredMessage] = Field(default_factory=list)


class KnowledgeEntry(BaseModel):
    id: Optional[str] = None
    category: str = "general"
    title: str
    content: str
    priority: int = 0
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)


class DailyMetric(BaseModel):
    """One row of the daily snapshot table; unknown columns are kept."""

    model_config = {"extra": "allow"}

    snapshot_date: str
    total_holders: Optional[int] = None
    transactions_24h: Optional[int] = None
    wco_moved_24h: Optional[float] = None
    market_cap: Optional[float] = None
    total_volume: Optional[float] = None
    circulating_supply: Optional[float] = None
    wco_burnt_total: Optional[float] = None
    wco_burnt_24h: Optional[float] = None
    active_wallets: Optional[int] = None
