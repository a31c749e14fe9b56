from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from bubbles.cache import TTLCache
from bubbles.core.agent.tools import ToolDependencies, ToolExecutor, ToolRegistry
from bubbles.core.resolver import HolderQueryKind
from bubbles.providers.llm.base import LLMMessage, LLMProvider, LLMResponse, ToolDefinition

HOLDER_COUNT = {"result": {"totalHolders": 1200, "totalAddresses": 1500}, "source": "fast_cache"}
DISTRIBUTION = {
    "result": {
        "categories": [
            {"name": "Kraken", "emoji": "🦑", "count": 12, "percentage": 0.8},
            {"name": "Whale", "emoji": "🐋", "count": 30, "percentage": 2.0},
        ],
        "total": 1500,
    },
    "source": "secondary_api",
}
TOP_KRAKENS = {
    "result": {
        "holders": [{"rank": 1, "address": "0x" + "a" * 40, "balance": 9_000_000.0, "category": "Kraken"}],
        "total": 12,
        "category": "Kraken",
    },
    "source": "fast_cache",
}


class ScriptedProvider(LLMProvider):
    """Replays canned responses; an exception in the script is raised instead."""

    supports_tools = True

    def __init__(self, responses: List[Any], supports_tools: bool = True):
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []
        self.supports_tools = supports_tools
        super().__init__("test-key", "google/gemini-2.5-flash")

    def _setup_client(self, **kwargs) -> None:
        pass

    async def generate_response(
        self,
        messages: List[LLMMessage],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        tools: Optional[List[ToolDefinition]] = None,
        model: Optional[str] = None,
        **kwargs,
    ) -> LLMResponse:
        self.calls.append({"messages": list(messages), "tools": tools, "model": model})
        # The last entry repeats once the script runs out.
        item = self.responses[min(len(self.calls), len(self.responses)) - 1]
        if isinstance(item, Exception):
            raise item
        return item.model_copy(update={"model": item.model or model})

    async def health_check(self) -> Dict[str, Any]:
        return {"status": "healthy"}


async def _holder_query(kind, params=None):
    kind = HolderQueryKind(kind)
    if kind is HolderQueryKind.COUNT:
        return HOLDER_COUNT
    if kind is HolderQueryKind.DISTRIBUTION:
        return DISTRIBUTION
    if kind is HolderQueryKind.TOP_N:
        return TOP_KRAKENS
    return {"error": "no data source available"}


@pytest.fixture
def tool_deps() -> ToolDependencies:
    resolver = MagicMock()
    resolver.resolve_holder_query = AsyncMock(side_effect=_holder_query)
    return ToolDependencies(
        resolver=resolver,
        explorer=MagicMock(),
        watcher=MagicMock(),
        chain=MagicMock(),
        oracle=MagicMock(),
        wave=MagicMock(),
        coingecko=MagicMock(),
        metrics=MagicMock(),
        knowledge=MagicMock(),
    )


@pytest.fixture
def tool_executor(tool_deps) -> ToolExecutor:
    return ToolExecutor(ToolRegistry(tool_deps), cache=TTLCache(), timeout_seconds=1.0)


@pytest.fixture
def scripted_provider():
    return ScriptedProvider
