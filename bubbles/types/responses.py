from typing import Any, Dict, List, Optional

from pydantic import Field

from .requests import CamelModel


class ChatResponse(CamelModel):
    message: str = Field(description="Assistant reply")
    conversation_id: str = Field(description="Conversation the turn was stored in")
    model: Optional[str] = Field(default=None, description="Model that answered; empty for short-circuited turns")
    rounds: int = Field(default=0, description="Model calls made")
    tool_calls: List[Dict[str, Any]] = Field(default_factory=list, description="Tools executed for this answer")
    short_circuit: bool = Field(default=False, description="Answered without a model call")
    hit_round_ceiling: bool = Field(default=False, description="Lookup budget ran out before the answer was complete")


class FeedbackResponse(CamelModel):
    updated: bool = Field(description="Whether a matching message was found")


class SessionClearedResponse(CamelModel):
    session_id: str
    conversations_removed: int


class HolderQueryResponse(CamelModel):
    result: Any = Field(description="Aggregated holder data")
    source: str = Field(description="fast_cache, secondary_api or paginated_scan")
