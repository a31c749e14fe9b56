"""
Conversation store.

Conversations are partitioned by id (and grouped by session id); messages are
only ever appended, except for the feedback marker.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..db.supabase_client import SupabaseClient
from ..types.conversations import Conversation, StoredMessage, utcnow

logger = logging.getLogger(__name__)


class ConversationStore(ABC):
    @abstractmethod
    async def create_conversation(self, session_id: str) -> Conversation:
        pass

    @abstractmethod
    async def get_conversation(self, conversation_id: str, include_messages: bool = True) -> Optional[Conversation]:
        pass

    @abstractmethod
    async def latest_for_session(self, session_id: str) -> Optional[Conversation]:
        """Most recently updated conversation of a session."""
        pass

    @abstractmethod
    async def list_messages(self, conversation_id: str, limit: Optional[int] = None) -> List[StoredMessage]:
        """Messages in timestamp order; ``limit`` keeps the newest ones."""
        pass

    @abstractmethod
    async def append_message(self, message: StoredMessage) -> StoredMessage:
        pass

    @abstractmethod
    async def touch(self, conversation_id: str) -> None:
        """Update the conversation's last-activity timestamp."""
        pass

    @abstractmethod
    async def set_feedback(self, conversation_id: str, role: str, content: str, feedback: str) -> bool:
        """Attach feedback to the newest message matching role + content."""
        pass

    @abstractmethod
    async def delete_session(self, session_id: str) -> int:
        """Remove every conversation of a session; returns how many were removed."""
        pass

    async def resolve_conversation(self, session_id: str, conversation_id: Optional[str] = None) -> Conversation:
        """Explicit id if it exists, else the session's newest conversation, else a new one."""
        if conversation_id:
            existing = await self.get_conversation(conversation_id, include_messages=False)
            if existing:
                return existing
            logger.info("Conversation %s not found, routing by session", conversation_id)
        latest = await self.latest_for_session(session_id)
        if latest:
            return latest
        return await self.create_conversation(session_id)


class InMemoryConversationStore(ConversationStore):
    def __init__(self):
        self._conversations: Dict[str, Conversation] = {}
        self._lock = asyncio.Lock()

    async def create_conversation(self, session_id: str) -> Conversation:
        conversation = Conversation(session_id=session_id)
        async with self._lock:
            self._conversations[conversation.id] = conversation
        return conversation.model_copy(deep=True)

    async def get_conversation(self, conversation_id: str, include_messages: bool = True) -> Optional[Conversation]:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return None
        copy = conversation.model_copy(deep=True)
        if include_messages:
            copy.messages.sort(key=lambda m: m.timestamp)
        else:
            copy.messages = []
        return copy

    async def latest_for_session(self, session_id: str) -> Optional[Conversation]:
        matches = [c for c in self._conversations.values() if c.session_id == session_id]
        if not matches:
            return None
        latest = max(matches, key=lambda c: c.updated_at)
        return await self.get_conversation(latest.id, include_messages=False)

    async def list_messages(self, conversation_id: str, limit: Optional[int] = None) -> List[StoredMessage]:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return []
        messages = sorted(conversation.messages, key=lambda m: m.timestamp)
        if limit is not None:
            messages = messages[-limit:] if limit > 0 else []
        return [m.model_copy(deep=True) for m in messages]

    async def append_message(self, message: StoredMessage) -> StoredMessage:
        async with self._lock:
            conversation = self._conversations.get(message.conversation_id)
            if conversation is None:
                raise KeyError(f"unknown conversation {message.conversation_id}")
            conversation.messages.append(message.model_copy(deep=True))
        return message

    async def touch(self, conversation_id: str) -> None:
        async with self._lock:
            conversation = self._conversations.get(conversation_id)
            if conversation is not None:
                conversation.updated_at = utcnow()

    async def set_feedback(self, conversation_id: str, role: str, content: str, feedback: str) -> bool:
        async with self._lock:
            conversation = self._conversations.get(conversation_id)
            if conversation is None:
                return False
            for message in sorted(conversation.messages, key=lambda m: m.timestamp, reverse=True):
                if message.role == role and message.content == content:
                    message.feedback = feedback
                    return True
        return False

    async def delete_session(self, session_id: str) -> int:
        async with self._lock:
            ids = [cid for cid, c in self._conversations.items() if c.session_id == session_id]
            for cid in ids:
                del self._conversations[cid]
        return len(ids)


class SupabaseConversationStore(ConversationStore):
    """``chat_conversations`` / ``chat_messages`` tables."""

    CONVERSATIONS = "chat_conversations"
    MESSAGES = "chat_messages"

    def __init__(self, client: SupabaseClient):
        self.client = client

    @staticmethod
    def _conversation(row: Dict[str, Any]) -> Conversation:
        return Conversation(
            id=row["id"],
            session_id=row.get("session_id") or "",
            created_at=row.get("created_at") or utcnow(),
            updated_at=row.get("updated_at") or row.get("created_at") or utcnow(),
        )

    @staticmethod
    def _message(row: Dict[str, Any]) -> StoredMessage:
        return StoredMessage(
            id=row["id"],
            conversation_id=row["conversation_id"],
            role=row["role"],
            content=row.get("content") or "",
            timestamp=row.get("timestamp") or utcnow(),
            tool_calls=row.get("tool_calls"),
            tool_results=row.get("tool_results"),
            feedback=row.get("feedback"),
        )

    async def create_conversation(self, session_id: str) -> Conversation:
        row = await self.client.insert(self.CONVERSATIONS, {"session_id": session_id})
        return self._conversation(row)

    async def get_conversation(self, conversation_id: str, include_messages: bool = True) -> Optional[Conversation]:
        rows = await self.client.select(self.CONVERSATIONS, filters=[("id", "eq", conversation_id)], limit=1)
        if not rows:
            return None
        conversation = self._conversation(rows[0])
        if include_messages:
            conversation.messages = await self.list_messages(conversation_id)
        return conversation

    async def latest_for_session(self, session_id: str) -> Optional[Conversation]:
        rows = await self.client.select(
            self.CONVERSATIONS,
            filters=[("session_id", "eq", session_id)],
            order=[("updated_at", False)],
            limit=1,
        )
        return self._conversation(rows[0]) if rows else None

    async def list_messages(self, conversation_id: str, limit: Optional[int] = None) -> List[StoredMessage]:
        if limit is not None and limit <= 0:
            return []
        # Newest-first so ``limit`` keeps the latest turns, then restore chronological order.
        rows = await self.client.select(
            self.MESSAGES,
            filters=[("conversation_id", "eq", conversation_id)],
            order=[("timestamp", False)],
            limit=limit,
        )
        return [self._message(row) for row in reversed(rows)]

    async def append_message(self, message: StoredMessage) -> StoredMessage:
        row = await self.client.insert(
            self.MESSAGES,
            {
                "id": message.id,
                "conversation_id": message.conversation_id,
                "role": message.role,
                "content": message.content,
                "timestamp": message.timestamp.isoformat(),
                "tool_calls": message.tool_calls,
                "tool_results": message.tool_results,
            },
        )
        return self._message(row)

    async def touch(self, conversation_id: str) -> None:
        await self.client.update(
            self.CONVERSATIONS,
            {"updated_at": utcnow().isoformat()},
            filters=[("id", "eq", conversation_id)],
        )

    async def set_feedback(self, conversation_id: str, role: str, content: str, feedback: str) -> bool:
        rows = await self.client.select(
            self.MESSAGES,
            filters=[("conversation_id", "eq", conversation_id), ("role", "eq", role)],
            order=[("timestamp", False)],
            columns="id,content",
        )
        for row in rows:
            if row.get("content") == content:
                await self.client.update(self.MESSAGES, {"feedback": feedback}, filters=[("id", "eq", row["id"])])
                return True
        return False

    async def delete_session(self, session_id: str) -> int:
        rows = await self.client.select(self.CONVERSATIONS, filters=[("session_id", "eq", session_id)], columns="id")
        for row in rows:
            await self.client.delete(self.MESSAGES, filters=[("conversation_id", "eq", row["id"])])
            await self.client.delete(self.CONVERSATIONS, filters=[("id", "eq", row["id"])])
        return len(rows)
