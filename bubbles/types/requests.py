from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatRequest(CamelModel):
    message: str = Field(min_length=1, max_length=4000, description="The user's message")
    session_id: str = Field(min_length=1, description="Client session; groups conversations")
    conversation_id: Optional[str] = Field(default=None, description="Continue this conversation if it exists")


class FeedbackRequest(CamelModel):
    conversation_id: str = Field(description="Conversation holding the message")
    role: Literal["user", "assistant"] = Field(default="assistant", description="Role of the rated message")
    content: str = Field(description="Exact content of the rated message")
    feedback: Literal["positive", "negative"] = Field(description="Rating")


class ToolRunRequest(CamelModel):
    arguments: Dict[str, Any] = Field(default_factory=dict, description="Tool arguments (camelCase)")
