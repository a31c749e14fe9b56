"""
Tests for the conversation orchestrator: tool rounds, model selection,
persistence and provider-fatal errors.
"""

import pytest

from bubbles.core.agent import ConversationOrchestrator, IntentRouter
from bubbles.core.recovery.errors import TurnAbortedError
from bubbles.core.resolver import HolderQueryKind
from bubbles.providers.llm.base import (
    LLMProviderQuotaError,
    LLMProviderRateLimitError,
    LLMResponse,
    ToolCall,
)
from bubbles.stores.conversations import InMemoryConversationStore
from bubbles.stores.knowledge import InMemoryKnowledgeStore
from bubbles.types.conversations import KnowledgeEntry

FAST = "google/gemini-2.5-flash"
REASONING = "google/gemini-2.5-pro"


def _orchestrator(provider, executor, store=None, intents=False, **kwargs):
    return ConversationOrchestrator(
        provider,
        executor,
        store or InMemoryConversationStore(),
        InMemoryKnowledgeStore([KnowledgeEntry(title="WCO", content="WCO is the native coin of W Chain.")]),
        IntentRouter(executor) if intents else None,
        fast_model=FAST,
        reasoning_model=REASONING,
        **kwargs,
    )


def _tool_round(*calls, content=None):
    return LLMResponse(content=content, tool_calls=[ToolCall(id=i, name=n, arguments=a) for i, n, a in calls])


# =============================================================================
# Tool loop
# =============================================================================

class TestToolLoop:
    @pytest.mark.asyncio
    async def test_answer_without_tools(self, scripted_provider, tool_executor):
        provider = scripted_provider([LLMResponse(content="W Chain is an EVM chain.")])
        orchestrator = _orchestrator(provider, tool_executor)

        turn = await orchestrator.process_message("session-1", "What is W Chain?")

        assert turn.message == "W Chain is an EVM chain."
        assert turn.rounds == 1
        assert turn.tool_calls == []
        assert turn.short_circuit is False

    @pytest.mark.asyncio
    async def test_top_krakens_turn_is_persisted_with_audit(self, scripted_provider, tool_executor, tool_deps):
        provider = scripted_provider([
            _tool_round(("call-1", "getTopHolders", {"limit": 5, "category": "Kraken"})),
            LLMResponse(content="The largest Kraken holds 9,000,000 WCO."),
        ])
        store = InMemoryConversationStore()
        orchestrator = _orchestrator(provider, tool_executor, store)

        turn = await orchestrator.process_message("session-1", "Show me the top 5 krakens")

        tool_deps.resolver.resolve_holder_query.assert_awaited_once_with(
            HolderQueryKind.TOP_N, {"limit": 5, "category": "Kraken"}
        )
        assert turn.rounds == 2
        assert turn.message == "The largest Kraken holds 9,000,000 WCO."
        assert turn.hit_round_ceiling is False

        second_call = provider.calls[1]["messages"]
        assert second_call[-2].role == "assistant"
        assert second_call[-2].tool_calls[0].id == "call-1"
        assert second_call[-1].role == "tool"
        assert second_call[-1].tool_call_id == "call-1"
        assert '"source": "fast_cache"' in second_call[-1].content

        messages = await store.list_messages(turn.conversation_id)
        assert [m.role for m in messages] == ["user", "assistant"]
        assistant = messages[1]
        assert assistant.tool_calls == [
            {"id": "call-1", "name": "getTopHolders", "arguments": {"limit": 5, "category": "Kraken"}}
        ]
        assert assistant.tool_results[0]["tool_call_id"] == "call-1"
        assert assistant.tool_results[0]["result"]["source"] == "fast_cache"

    @pytest.mark.asyncio
    async def test_round_ceiling(self, scripted_provider, tool_executor):
        provider = scripted_provider([_tool_round(("c", "getHolderCount", {}))])
        orchestrator = _orchestrator(provider, tool_executor, max_rounds=3)

        turn = await orchestrator.process_message("session-1", "keep looking")

        assert len(provider.calls) == 3
        assert turn.rounds == 3
        assert len(turn.tool_calls) == 2
        assert "getHolderCount" in turn.message
        assert turn.hit_round_ceiling is True

    @pytest.mark.asyncio
    async def test_tool_errors_are_fed_back_not_raised(self, scripted_provider, tool_executor):
        provider = scripted_provider([
            _tool_round(("c1", "getMoonPhase", {}), ("c2", "getHolderCount", {})),
            LLMResponse(content="There are 1,200 holders."),
        ])
        orchestrator = _orchestrator(provider, tool_executor)

        turn = await orchestrator.process_message("session-1", "holders and moon")

        tool_messages = [m for m in provider.calls[1]["messages"] if m.role == "tool"]
        assert [m.tool_call_id for m in tool_messages] == ["c1", "c2"]
        assert "unknown tool" in tool_messages[0].content
        assert turn.message == "There are 1,200 holders."

    @pytest.mark.asyncio
    async def test_tool_results_are_truncated(self, scripted_provider, tool_executor):
        provider = scripted_provider([
            _tool_round(("c1", "getTierDefinitions", {})),
            LLMResponse(content="done"),
        ])
        orchestrator = _orchestrator(provider, tool_executor, tool_result_char_limit=40)

        await orchestrator.process_message("session-1", "tiers please, in detail")

        tool_message = provider.calls[1]["messages"][-1]
        assert tool_message.content.endswith("...[truncated]")
        assert len(tool_message.content) == 40


# =============================================================================
# Context, routing and model selection
# =============================================================================

class TestContext:
    @pytest.mark.asyncio
    async def test_history_and_knowledge_reach_the_model(self, scripted_provider, tool_executor):
        provider = scripted_provider([LLMResponse(content="first answer")])
        orchestrator = _orchestrator(provider, tool_executor)

        first = await orchestrator.process_message("session-1", "first question")
        await orchestrator.process_message("session-1", "second question")

        messages = provider.calls[1]["messages"]
        assert messages[0].role == "system"
        assert "WCO is the native coin of W Chain." in messages[0].content
        assert [(m.role, m.content) for m in messages[1:]] == [
            ("user", "first question"),
            ("assistant", "first answer"),
            ("user", "second question"),
        ]
        assert first.conversation_id

    @pytest.mark.asyncio
    async def test_history_is_bounded(self, scripted_provider, tool_executor):
        provider = scripted_provider([LLMResponse(content="ok")])
        orchestrator = _orchestrator(provider, tool_executor, history_turns=2)

        for i in range(3):
            await orchestrator.process_message("session-1", f"question {i}")

        messages = provider.calls[-1]["messages"]
        assert len(messages) == 1 + 2 + 1

    @pytest.mark.asyncio
    async def test_unknown_conversation_id_routes_by_session(self, scripted_provider, tool_executor):
        orchestrator = _orchestrator(scripted_provider([LLMResponse(content="ok")]), tool_executor)

        first = await orchestrator.process_message("session-1", "hello")
        second = await orchestrator.process_message("session-1", "again", conversation_id="does-not-exist")

        assert second.conversation_id == first.conversation_id

    @pytest.mark.parametrize("message,expected", [
        ("top krakens", FAST),
        ("Why did kraken outflows spike?", REASONING),
        ("Compare whales and sharks", REASONING),
        ("x" * 300, REASONING),
    ])
    def test_model_selection(self, scripted_provider, tool_executor, message, expected):
        orchestrator = _orchestrator(scripted_provider([]), tool_executor)
        assert orchestrator.select_model(message) == expected

    def test_fast_model_without_tool_support(self, scripted_provider, tool_executor):
        provider = scripted_provider([], supports_tools=False)
        orchestrator = _orchestrator(provider, tool_executor)
        assert orchestrator.select_model("Why is that?") == FAST

    @pytest.mark.asyncio
    async def test_selected_model_is_used_for_every_round(self, scripted_provider, tool_executor):
        provider = scripted_provider([
            _tool_round(("c1", "getHolderCount", {})),
            LLMResponse(content="Because holders grew."),
        ])
        orchestrator = _orchestrator(provider, tool_executor)

        turn = await orchestrator.process_message("session-1", "Explain the holder growth")

        assert [c["model"] for c in provider.calls] == [REASONING, REASONING]
        assert turn.model == REASONING


# =============================================================================
# Short-circuit and provider failures
# =============================================================================

class TestShortCircuit:
    @pytest.mark.asyncio
    async def test_intent_answers_without_model_call(self, scripted_provider, tool_executor):
        provider = scripted_provider([LLMResponse(content="unused")])
        store = InMemoryConversationStore()
        orchestrator = _orchestrator(provider, tool_executor, store, intents=True)

        turn = await orchestrator.process_message("session-1", "How many holders?")

        assert turn.short_circuit is True
        assert turn.rounds == 0
        assert provider.calls == []
        messages = await store.list_messages(turn.conversation_id)
        assert messages[1].tool_calls[0]["name"] == "getHolderCount"

    @pytest.mark.asyncio
    async def test_intents_work_without_a_model(self, tool_executor):
        orchestrator = _orchestrator(None, tool_executor, intents=True)

        turn = await orchestrator.process_message("session-1", "how many holders")
        assert "1,200" in turn.message

        with pytest.raises(TurnAbortedError) as exc:
            await orchestrator.process_message("session-1", "tell me a story")
        assert exc.value.status == 503


class TestProviderFailures:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("error,status", [
        (LLMProviderRateLimitError("slow down"), 429),
        (LLMProviderQuotaError("no credits"), 402),
    ])
    async def test_fatal_errors_abort_the_turn(self, scripted_provider, tool_executor, error, status):
        store = InMemoryConversationStore()
        orchestrator = _orchestrator(scripted_provider([error]), tool_executor, store)

        with pytest.raises(TurnAbortedError) as exc:
            await orchestrator.process_message("session-1", "hello")

        assert exc.value.status == status
        conversation = await store.latest_for_session("session-1")
        assert await store.list_messages(conversation.id) == []


# =============================================================================
# Side operations
# =============================================================================

class TestFeedbackAndClear:
    @pytest.mark.asyncio
    async def test_feedback_is_idempotent(self, scripted_provider, tool_executor):
        store = InMemoryConversationStore()
        orchestrator = _orchestrator(scripted_provider([LLMResponse(content="answer")]), tool_executor, store)
        turn = await orchestrator.process_message("session-1", "question")

        assert await orchestrator.submit_feedback(turn.conversation_id, "assistant", "answer", "positive") is True
        assert await orchestrator.submit_feedback(turn.conversation_id, "assistant", "answer", "positive") is True

        messages = await store.list_messages(turn.conversation_id)
        assert [m.feedback for m in messages] == [None, "positive"]

    @pytest.mark.asyncio
    async def test_feedback_value_is_validated(self, scripted_provider, tool_executor):
        orchestrator = _orchestrator(scripted_provider([]), tool_executor)
        with pytest.raises(ValueError):
            await orchestrator.submit_feedback("conv", "assistant", "answer", "meh")

    @pytest.mark.asyncio
    async def test_unmatched_feedback(self, scripted_provider, tool_executor):
        orchestrator = _orchestrator(scripted_provider([LLMResponse(content="answer")]), tool_executor)
        turn = await orchestrator.process_message("session-1", "question")

        assert await orchestrator.submit_feedback(turn.conversation_id, "assistant", "other", "negative") is False

    @pytest.mark.asyncio
    async def test_clear_session(self, scripted_provider, tool_executor):
        store = InMemoryConversationStore()
        orchestrator = _orchestrator(scripted_provider([LLMResponse(content="ok")]), tool_executor, store)
        await orchestrator.process_message("session-1", "hi")

        assert await orchestrator.clear_session("session-1") == 1
        assert await store.latest_for_session("session-1") is None
