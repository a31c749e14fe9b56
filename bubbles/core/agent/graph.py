"""LangGraph-powered orchestration of one conversation turn.

    short_circuit ──answered──────────────────────────► persist → END
         │
         └──► assemble_context → tool_loop ───────────► persist → END

Each node delegates to the orchestrator; the graph only fixes the order.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, List, Optional, TypedDict

from langgraph.graph import END, StateGraph

if TYPE_CHECKING:  # pragma: no cover
    from .orchestrator import ConversationOrchestrator, TurnOutcome
    from ...providers.llm.base import LLMMessage
    from ...types.conversations import Conversation
else:  # pragma: no cover - runtime fallbacks for type hints
    ConversationOrchestrator = Any  # type: ignore
    TurnOutcome = Any  # type: ignore
    LLMMessage = Any  # type: ignore
    Conversation = Any  # type: ignore


class TurnState(TypedDict, total=False):
    """Mutable state object passed between LangGraph nodes."""

    conversation: "Conversation"
    message: str
    start_time: datetime
    context_messages: List["LLMMessage"]
    outcome: Optional["TurnOutcome"]


def build_turn_graph(orchestrator: "ConversationOrchestrator"):
    """Compile the pipeline behind ``ConversationOrchestrator.process_message``."""

    graph: StateGraph[TurnState] = StateGraph(TurnState)

    async def short_circuit(state: TurnState) -> TurnState:
        outcome = await orchestrator._short_circuit(state['message'])  # pylint: disable=protected-access
        return {'outcome': outcome}

    async def assemble_context(state: TurnState) -> TurnState:
        context_messages = await orchestrator._assemble_context(  # pylint: disable=protected-access
            state['conversation'].id,
            state['message'],
        )
        return {'context_messages': context_messages}

    async def tool_loop(state: TurnState) -> TurnState:
        outcome = await orchestrator._run_tool_loop(  # pylint: disable=protected-access
            state.get('context_messages', []),
            state['message'],
        )
        return {'outcome': outcome}

    async def persist(state: TurnState) -> TurnState:
        await orchestrator._persist_turn(  # pylint: disable=protected-access
            state['conversation'].id,
            state['message'],
            state['outcome'],
        )
        return {}

    graph.add_node('short_circuit', short_circuit)
    graph.add_node('assemble_context', assemble_context)
    graph.add_node('tool_loop', tool_loop)
    graph.add_node('persist', persist)

    graph.set_entry_point('short_circuit')

    def _short_circuit_condition(state: TurnState) -> str:
        return 'answered' if state.get('outcome') else 'continue'

    graph.add_conditional_edges(
        'short_circuit',
        _short_circuit_condition,
        {
            'answered': 'persist',
            'continue': 'assemble_context',
        },
    )

    graph.add_edge('assemble_context', 'tool_loop')
    graph.add_edge('tool_loop', 'persist')
    graph.add_edge('persist', END)

    return graph.compile()
