"""Knowledge base feed for the system prompt and the search tool."""

from abc import ABC, abstractmethod
from typing import Iterable, List

from ..db.supabase_client import SupabaseClient
from ..types.conversations import KnowledgeEntry


class KnowledgeStore(ABC):
    @abstractmethod
    async def active_entries(self) -> List[KnowledgeEntry]:
        """Active entries ordered by priority desc, then newest first."""
        pass

    async def search(self, query: str, limit: int = 5) -> List[KnowledgeEntry]:
        terms = [t for t in query.lower().split() if len(t) > 2]
        if not terms:
            return []

        scored = []
        for entry in await self.active_entries():
            haystack = f"{entry.title} {entry.category} {entry.content}".lower()
            score = sum(haystack.count(term) for term in terms)
            if score:
                scored.append((score, entry.priority, entry))
        scored.sort(key=lambda item: (item[0], item[1]), reverse=True)
        return [entry for _, _, entry in scored[:limit]]


def format_knowledge(entries: Iterable[KnowledgeEntry]) -> str:
    """Concatenate entries into the prompt block, preserving order."""
    return "\n\n".join(f"### {e.title} ({e.category})\n{e.content.strip()}" for e in entries)


class InMemoryKnowledgeStore(KnowledgeStore):
    def __init__(self, entries: Iterable[KnowledgeEntry] = ()):
        self._entries = list(entries)

    async def active_entries(self) -> List[KnowledgeEntry]:
        active = [e for e in self._entries if e.is_active]
        # Two stable sorts: recency first, then priority as the primary key.
        active.sort(key=lambda e: e.created_at, reverse=True)
        active.sort(key=lambda e: e.priority, reverse=True)
        return active


class SupabaseKnowledgeStore(KnowledgeStore):
    TABLE = "knowledge_base"

    def __init__(self, client: SupabaseClient):
        self.client = client

    async def active_entries(self) -> List[KnowledgeEntry]:
        rows = await self.client.select(
            self.TABLE,
            filters=[("is_active", "eq", True)],
            order=[("priority", False), ("created_at", False)],
        )
        return [KnowledgeEntry(**row) for row in rows]
