"""
Conversation Orchestrator

Runs one user turn: intent short-circuit, context assembly, model selection,
bounded tool rounds and persistence. The order of those steps lives in
``graph.build_turn_graph``; this module holds the steps themselves.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ...providers.llm.base import (
    LLMMessage,
    LLMProvider,
    LLMProviderAuthError,
    LLMProviderError,
    LLMProviderQuotaError,
    LLMProviderRateLimitError,
    ToolResult,
)
from ...stores.conversations import ConversationStore
from ...stores.knowledge import KnowledgeStore
from ...types.conversations import StoredMessage
from ..recovery.errors import TurnAbortedError
from .graph import build_turn_graph
from .intents import IntentRouter
from .prompts import build_system_prompt
from .tools import ToolExecutor

REASONING_KEYWORDS = (
    "why", "explain", "compare", "optimize", "optimise", "analyze", "analyse",
    "predict", "difference", "should i", "strategy", "trend",
)
_REASONING_RE = re.compile(r"\b(?:" + "|".join(re.escape(k) for k in REASONING_KEYWORDS) + r")", re.I)

FEEDBACK_VALUES = ("positive", "negative")

RATE_LIMIT_MESSAGE = "Rate limits exceeded, please try again later."
QUOTA_MESSAGE = "Payment required, please add funds to the AI workspace."


@dataclass
class TurnOutcome:
    """What a turn produced, before it is persisted."""

    content: str
    model: Optional[str] = None
    rounds: int = 0
    tool_calls: List[Dict[str, Any]] = field(default_factory=list)
    tool_results: List[Dict[str, Any]] = field(default_factory=list)
    tokens_used: Optional[int] = None
    short_circuit: bool = False
    hit_round_ceiling: bool = False


class TurnResponse(BaseModel):
    """Structured result of ``process_message``."""

    message: str = Field(description="Final assistant message")
    conversation_id: str = Field(description="Conversation the turn was stored in")
    model: Optional[str] = Field(default=None, description="Model that produced the answer")
    rounds: int = Field(default=0, description="Model calls made this turn")
    tool_calls: List[Dict[str, Any]] = Field(default_factory=list, description="Executed tool calls")
    short_circuit: bool = Field(default=False, description="Answered without a model call")
    hit_round_ceiling: bool = Field(default=False, description="Stopped with tool calls still pending")
    tokens_used: Optional[int] = None
    processing_time_ms: Optional[float] = None


class ConversationOrchestrator:
    """
    Multi-round tool-calling loop over one conversation store.

    The turn ends when a model round requests no tools or when
    ``max_rounds`` model calls have been made. Rate-limit, quota and
    credential failures of the provider abort the turn with
    ``TurnAbortedError``; every other failure is a tool result the model
    gets to read.
    """

    def __init__(
        self,
        llm_provider: Optional[LLMProvider],
        executor: ToolExecutor,
        store: ConversationStore,
        knowledge: Optional[KnowledgeStore] = None,
        intents: Optional[IntentRouter] = None,
        *,
        fast_model: str = "google/gemini-2.5-flash",
        reasoning_model: str = "google/gemini-2.5-pro",
        max_rounds: int = 3,
        history_turns: int = 12,
        tool_result_char_limit: int = 12000,
        reasoning_length_threshold: int = 280,
        max_tokens: Optional[int] = 2000,
        temperature: Optional[float] = 0.4,
        logger: Optional[logging.Logger] = None,
    ):
        self.llm_provider = llm_provider
        self.executor = executor
        self.store = store
        self.knowledge = knowledge
        self.intents = intents
        self.fast_model = fast_model
        self.reasoning_model = reasoning_model
        self.max_rounds = max_rounds
        self.history_turns = history_turns
        self.tool_result_char_limit = tool_result_char_limit
        self.reasoning_length_threshold = reasoning_length_threshold
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.logger = logger or logging.getLogger(__name__)
        self._turn_graph = build_turn_graph(self)

    @classmethod
    def from_settings(cls, settings, llm_provider, executor, store, knowledge=None, intents=None, **kwargs):
        return cls(
            llm_provider,
            executor,
            store,
            knowledge,
            intents if settings.enable_intent_shortcuts else None,
            fast_model=settings.llm_fast_model,
            reasoning_model=settings.llm_reasoning_model,
            max_rounds=settings.max_tool_rounds,
            history_turns=settings.history_turns,
            tool_result_char_limit=settings.tool_result_char_limit,
            reasoning_length_threshold=settings.reasoning_length_threshold,
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
            **kwargs,
        )

    @property
    def tools_in_play(self) -> bool:
        return bool(self.llm_provider and self.llm_provider.supports_tools and self.executor.registry.names())

    def select_model(self, message: str) -> str:
        """Stronger model for reasoning-heavy messages when tools are in play."""
        if not self.tools_in_play:
            return self.fast_model
        if len(message) > self.reasoning_length_threshold or _REASONING_RE.search(message):
            return self.reasoning_model
        return self.fast_model

    async def process_message(
        self,
        session_id: str,
        message: str,
        conversation_id: Optional[str] = None,
    ) -> TurnResponse:
        """
        Process one user message:
        1. Route to a conversation (explicit id, newest of the session, or new)
        2. Try the intent short-circuit
        3. Otherwise assemble context and run the tool loop
        4. Persist the user turn and the final assistant turn
        """
        start_time = datetime.now()
        conversation = await self.store.resolve_conversation(session_id, conversation_id)

        state = await self._turn_graph.ainvoke({
            'conversation': conversation,
            'message': message,
            'start_time': start_time,
        })
        outcome: Optional[TurnOutcome] = state.get('outcome')
        if outcome is None:
            raise RuntimeError('Turn pipeline failed to produce an answer')

        return TurnResponse(
            message=outcome.content,
            conversation_id=conversation.id,
            model=outcome.model,
            rounds=outcome.rounds,
            tool_calls=outcome.tool_calls,
            short_circuit=outcome.short_circuit,
            hit_round_ceiling=outcome.hit_round_ceiling,
            tokens_used=outcome.tokens_used,
            processing_time_ms=(datetime.now() - start_time).total_seconds() * 1000,
        )

    # -- Pipeline steps ------------------------------------------------------

    async def _short_circuit(self, message: str) -> Optional[TurnOutcome]:
        if self.intents is None:
            return None
        answer = await self.intents.answer(message)
        if answer is None:
            return None
        return TurnOutcome(
            content=answer.content,
            tool_calls=answer.tool_calls,
            tool_results=answer.tool_results,
            short_circuit=True,
        )

    async def _assemble_context(self, conversation_id: str, message: str) -> List[LLMMessage]:
        """System prompt, the last ``history_turns`` stored messages, then the new message."""
        knowledge = await self.knowledge.active_entries() if self.knowledge else []
        messages = [LLMMessage(role="system", content=build_system_prompt(knowledge))]

        history = await self.store.list_messages(conversation_id, limit=self.history_turns)
        messages.extend(
            LLMMessage(role=m.role, content=m.content)
            for m in history
            if m.role in ("user", "assistant") and m.content
        )
        messages.append(LLMMessage(role="user", content=message))
        return messages

    async def _run_tool_loop(self, messages: List[LLMMessage], user_message: str) -> TurnOutcome:
        if self.llm_provider is None:
            raise TurnAbortedError("language model is not configured", status=503, reason="not_configured")

        model = self.select_model(user_message)
        tools = self.executor.registry.get_definitions() if self.tools_in_play else None
        context = list(messages)
        outcome = TurnOutcome(content="", model=model)
        best_content: Optional[str] = None
        tokens = 0

        for round_number in range(1, self.max_rounds + 1):
            response = await self._call_model(context, tools, model)
            outcome.rounds = round_number
            outcome.model = response.model or model
            tokens += response.tokens_used or 0

            if response.content and response.content.strip():
                best_content = response.content

            if not response.tool_calls:
                break

            if round_number == self.max_rounds:
                outcome.hit_round_ceiling = True
                self.logger.warning(
                    "Round ceiling %d reached with %d tool calls pending",
                    self.max_rounds,
                    len(response.tool_calls),
                )
                break

            self.logger.info(
                "Round %d: executing %s",
                round_number,
                ", ".join(call.name for call in response.tool_calls),
            )
            results = await self.executor.execute_parallel(response.tool_calls)

            context.append(LLMMessage(role="assistant", content=response.content, tool_calls=response.tool_calls))
            for result in results:
                context.append(
                    LLMMessage(
                        role="tool",
                        tool_call_id=result.tool_call_id,
                        name=result.name,
                        content=result.content(self.tool_result_char_limit),
                    )
                )

            outcome.tool_calls.extend(
                {"id": call.id, "name": call.name, "arguments": call.arguments}
                for call in response.tool_calls
            )
            outcome.tool_results.extend(self._audit_record(result) for result in results)

        outcome.tokens_used = tokens or None
        outcome.content = best_content or self._fallback_content(outcome)
        return outcome

    async def _call_model(self, context: List[LLMMessage], tools, model: str):
        try:
            return await self.llm_provider.generate_response(
                messages=context,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                tools=tools,
                model=model,
            )
        except LLMProviderRateLimitError as e:
            raise TurnAbortedError(RATE_LIMIT_MESSAGE, status=429, reason="rate_limited") from e
        except LLMProviderQuotaError as e:
            raise TurnAbortedError(QUOTA_MESSAGE, status=402, reason="quota_exhausted") from e
        except LLMProviderAuthError as e:
            raise TurnAbortedError("language model credentials were rejected", status=401, reason="auth") from e
        except LLMProviderError as e:
            self.logger.error(f"Model call failed: {e}")
            raise TurnAbortedError("language model request failed", status=502, reason="provider_error") from e

    @staticmethod
    def _audit_record(result: ToolResult) -> Dict[str, Any]:
        record: Dict[str, Any] = {"tool_call_id": result.tool_call_id, "name": result.name}
        if result.error is not None:
            record["error"] = result.error
        else:
            record["result"] = result.result
        return record

    @staticmethod
    def _fallback_content(outcome: TurnOutcome) -> str:
        names = sorted({call["name"] for call in outcome.tool_calls})
        if names:
            return (
                f"I gathered data from {', '.join(names)} but could not finish the answer "
                "within my lookup budget. Please try a narrower question."
            )
        return "I could not come up with an answer to that. Please try rephrasing the question."

    async def _persist_turn(self, conversation_id: str, message: str, outcome: TurnOutcome) -> None:
        await self.store.append_message(
            StoredMessage(conversation_id=conversation_id, role="user", content=message)
        )
        await self.store.append_message(
            StoredMessage(
                conversation_id=conversation_id,
                role="assistant",
                content=outcome.content,
                tool_calls=outcome.tool_calls or None,
                tool_results=outcome.tool_results or None,
            )
        )
        await self.store.touch(conversation_id)

    # -- Side operations -----------------------------------------------------

    async def submit_feedback(self, conversation_id: str, role: str, content: str, feedback: str) -> bool:
        """Attach a positive / negative marker to the matching message. Idempotent."""
        if feedback not in FEEDBACK_VALUES:
            raise ValueError(f"feedback must be one of {', '.join(FEEDBACK_VALUES)}")
        updated = await self.store.set_feedback(conversation_id, role, content, feedback)
        if not updated:
            self.logger.info("No %s message in %s matched the feedback content", role, conversation_id)
        return updated

    async def clear_session(self, session_id: str) -> int:
        removed = await self.store.delete_session(session_id)
        self.logger.info("Cleared %d conversations for session %s", removed, session_id)
        return removed
