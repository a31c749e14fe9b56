"""System prompt for Bubbles, the W Chain dashboard assistant."""

from typing import Iterable

from ...stores.knowledge import format_knowledge
from ...types.conversations import KnowledgeEntry
from ..classification import ALL_TIERS

BUBBLES_SYSTEM_PROMPT = """You are Bubbles, a helpful W Chain blockchain assistant.

Scope:
- Answer questions about WCO holders, wallet tiers, transactions, tokens, prices and network statistics.
- Use the available tools to fetch live data from the W Chain explorer, RPC nodes and price oracle.
  Never guess a number a tool can provide.

Guardrails:
- If a tool returns an error, say which data is unavailable instead of inventing values.
- Holder numbers come with a `source`; they are a point-in-time snapshot.

Style:
- Format responses clearly with numbers, statistics and relevant details.
- Truncate wallet addresses for readability (e.g., 0xfac5...6df).
- Prefer short bullet lists for breakdowns."""


def tier_reference() -> str:
    lines = []
    for tier in ALL_TIERS:
        if tier.is_override:
            lines.append(f"- {tier.emoji} {tier.name}: {tier.description} (overrides balance)")
        else:
            lines.append(f"- {tier.emoji} {tier.name}: {tier.description}")
    return "\n".join(lines)


def build_system_prompt(knowledge: Iterable[KnowledgeEntry] = ()) -> str:
    """Base prompt, the tier table and any active knowledge-base entries."""
    sections = [BUBBLES_SYSTEM_PROMPT, "Wallet tiers:\n" + tier_reference()]
    knowledge_block = format_knowledge(knowledge)
    if knowledge_block:
        sections.append("Knowledge base:\n" + knowledge_block)
    return "\n\n".join(sections)
