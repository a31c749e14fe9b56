"""
Intent short-circuit.

An ordered list of ``(predicate, handler)`` rules evaluated before the model
is called. A matching rule answers straight from the tool executor, so the
turn costs no model call. Removing every rule changes latency and cost only:
the model reaches the same tools on its own.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from ..classification import ALL_TIERS, find_tier
from .tool_args import ToolName
from .tools import ToolExecutor

logger = logging.getLogger(__name__)


@dataclass
class IntentAnswer:
    """A direct answer plus the tool calls that produced it (kept for audit)."""

    content: str
    tool_calls: List[Dict[str, Any]] = field(default_factory=list)
    tool_results: List[Dict[str, Any]] = field(default_factory=list)


Predicate = Callable[[str], Optional[re.Match]]
IntentHandler = Callable[[re.Match, ToolExecutor], Awaitable[Optional[IntentAnswer]]]


@dataclass
class IntentRule:
    name: str
    predicate: Predicate
    handler: IntentHandler


_TIER_WORDS = {
    "krakens": "Kraken", "kraken": "Kraken",
    "whales": "Whale", "whale": "Whale",
    "sharks": "Shark", "shark": "Shark",
    "dolphins": "Dolphin", "dolphin": "Dolphin",
    "fish": "Fish", "fishes": "Fish",
    "octopuses": "Octopus", "octopi": "Octopus", "octopus": "Octopus",
    "crabs": "Crab", "crab": "Crab",
    "shrimps": "Shrimp", "shrimp": "Shrimp",
    "plankton": "Plankton", "planktons": "Plankton",
}

# Whole-message count questions only: "how many whales sold today" is not a
# holder count and goes to the model.
_COUNT_TAIL = (
    r"(?:\s+(?:are\s+there|exist|(?:does|do)\s+(?:wco|w\s?chain)\s+have|hold\s+wco))?"
    r"(?:\s+(?:are\s+)?(?:on|in)\s+w\s?chain)?"
    r"\s*[?.!]?\s*$"
)
_TIER_ALTERNATION = "|".join(sorted(_TIER_WORDS, key=len, reverse=True))

HOLDER_COUNT_RE = re.compile(
    r"^\s*how many\s+(?:wco\s+)?(?:holders|wallets|addresses)(?:\s+(?:of|for)\s+wco)?" + _COUNT_TAIL,
    re.I,
)
TIER_COUNT_RE = re.compile(
    r"^\s*how many\s+(?:wco\s+)?(" + _TIER_ALTERNATION + r")(?:\s+(?:wallets|holders|addresses))?" + _COUNT_TAIL,
    re.I,
)

TIER_TABLE_RE = re.compile(r"^\s*(?:what|list|show)(?:\s+me)?(?:\s+are)?(?:\s+the)?(?:\s+wallet)?\s+(?:tiers|categories)\s*\??\s*$", re.I)


def _answer(content: str, name: ToolName, arguments: Dict[str, Any], result: Any) -> IntentAnswer:
    call_id = f"intent-{name.value}"
    return IntentAnswer(
        content,
        [{"id": call_id, "name": name.value, "arguments": arguments}],
        [{"tool_call_id": call_id, "name": name.value, "result": result}],
    )


async def _answer_holder_count(match: re.Match, executor: ToolExecutor) -> Optional[IntentAnswer]:
    result = await executor.execute(ToolName.GET_HOLDER_COUNT.value)
    if "error" in result:
        return None
    counts = result["result"]
    content = (
        f"W Chain currently has **{counts['totalHolders']:,}** WCO holders "
        f"({counts['totalAddresses']:,} addresses tracked, source: {result['source']})."
    )
    return _answer(content, ToolName.GET_HOLDER_COUNT, {}, result)


async def _answer_tier_count(match: re.Match, executor: ToolExecutor) -> Optional[IntentAnswer]:
    tier = find_tier(_TIER_WORDS[match.group(1).lower()])
    if tier is None:
        return None
    arguments = {"includePercentages": True}
    result = await executor.execute(ToolName.GET_HOLDER_DISTRIBUTION.value, arguments)
    if "error" in result:
        return None
    entry = next((c for c in result["result"]["categories"] if c["name"] == tier.name), None)
    if entry is None:
        return None
    content = (
        f"There are **{entry['count']:,}** {tier.emoji} {tier.name} wallets "
        f"({entry['percentage']}% of {result['result']['total']:,} wallets, source: {result['source']})."
    )
    return _answer(content, ToolName.GET_HOLDER_DISTRIBUTION, arguments, result)


async def _answer_tier_table(match: re.Match, executor: ToolExecutor) -> Optional[IntentAnswer]:
    lines = ["W Chain wallet tiers, from largest to smallest:"]
    for tier in ALL_TIERS:
        suffix = " (overrides balance)" if tier.is_override else ""
        lines.append(f"- {tier.emoji} **{tier.name}**: {tier.description}{suffix}")
    return IntentAnswer("\n".join(lines))


DEFAULT_RULES: Sequence[IntentRule] = (
    IntentRule("tier_count", TIER_COUNT_RE.search, _answer_tier_count),
    IntentRule("holder_count", HOLDER_COUNT_RE.search, _answer_holder_count),
    IntentRule("tier_table", TIER_TABLE_RE.search, _answer_tier_table),
)


class IntentRouter:
    """First matching rule with an answer wins; no match means "ask the model"."""

    def __init__(self, executor: ToolExecutor, rules: Sequence[IntentRule] = DEFAULT_RULES):
        self.executor = executor
        self.rules = list(rules)

    async def answer(self, message: str) -> Optional[IntentAnswer]:
        for rule in self.rules:
            match = rule.predicate(message)
            if not match:
                continue
            answer = await rule.handler(match, self.executor)
            if answer is not None:
                logger.info("Intent %s answered without a model call", rule.name)
                return answer
            logger.debug("Intent %s matched but had no answer", rule.name)
        return None
