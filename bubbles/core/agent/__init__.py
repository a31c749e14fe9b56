"""
Bubbles conversation agent

Tool registry and executor, intent short-circuit and the multi-round
conversation orchestrator.
"""

from .intents import IntentAnswer, IntentRouter, IntentRule
from .orchestrator import ConversationOrchestrator, TurnOutcome, TurnResponse
from .tool_args import ToolName
from .tools import ToolDependencies, ToolExecutor, ToolRegistry

__all__ = [
    "ConversationOrchestrator",
    "TurnOutcome",
    "TurnResponse",
    "IntentAnswer",
    "IntentRouter",
    "IntentRule",
    "ToolName",
    "ToolDependencies",
    "ToolExecutor",
    "ToolRegistry",
]
