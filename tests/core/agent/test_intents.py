import pytest

from bubbles.core.agent.intents import (
    HOLDER_COUNT_RE,
    TIER_COUNT_RE,
    TIER_TABLE_RE,
    IntentRouter,
)


class TestIntentPredicates:
    @pytest.mark.parametrize("message", [
        "How many holders does WCO have?",
        "how many wco holders are there",
        "how many wallets exist",
    ])
    def test_holder_count_matches(self, message):
        assert HOLDER_COUNT_RE.search(message)

    @pytest.mark.parametrize("message", [
        "How many krakens are there?",
        "how many whale wallets",
        "how many octopi",
    ])
    def test_tier_count_matches(self, message):
        assert TIER_COUNT_RE.search(message)

    @pytest.mark.parametrize("message", [
        "how many whales sold today",
        "How many krakens moved WCO to exchanges?",
        "how many holders bought WCO this week",
        "how many wallets did 0x1111111111111111111111111111111111111111 send to",
    ])
    def test_other_how_many_questions_do_not_match(self, message):
        assert not TIER_COUNT_RE.search(message)
        assert not HOLDER_COUNT_RE.search(message)

    def test_tier_count_with_chain_suffix(self):
        assert TIER_COUNT_RE.search("How many Kraken holders are on W Chain?").group(1) == "Kraken"

    def test_tier_table_is_anchored(self):
        assert TIER_TABLE_RE.search("What are the tiers?")
        assert TIER_TABLE_RE.search("list wallet categories")
        assert not TIER_TABLE_RE.search("which categories hold the most WCO")


class TestIntentRouter:
    @pytest.mark.asyncio
    async def test_holder_count_answer(self, tool_executor):
        answer = await IntentRouter(tool_executor).answer("How many holders are there?")

        assert "1,200" in answer.content
        assert "fast_cache" in answer.content
        assert answer.tool_calls == [{"id": "intent-getHolderCount", "name": "getHolderCount", "arguments": {}}]
        assert answer.tool_results[0]["tool_call_id"] == "intent-getHolderCount"

    @pytest.mark.asyncio
    async def test_tier_count_wins_over_holder_count(self, tool_executor):
        answer = await IntentRouter(tool_executor).answer("how many krakens are there")

        assert "**12**" in answer.content
        assert "Kraken" in answer.content
        assert answer.tool_calls[0]["name"] == "getHolderDistribution"

    @pytest.mark.asyncio
    async def test_tier_table_needs_no_tool(self, tool_executor, tool_deps):
        answer = await IntentRouter(tool_executor).answer("show me the tiers")

        assert "Kraken" in answer.content
        assert "overrides balance" in answer.content
        assert answer.tool_calls == []
        tool_deps.resolver.resolve_holder_query.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_activity_question_goes_to_the_model(self, tool_executor, tool_deps):
        assert await IntentRouter(tool_executor).answer("how many whales sold today") is None
        tool_deps.resolver.resolve_holder_query.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_tool_error_falls_through_to_model(self, tool_executor, tool_deps):
        tool_deps.resolver.resolve_holder_query.side_effect = None
        tool_deps.resolver.resolve_holder_query.return_value = {"error": "no data source available"}

        assert await IntentRouter(tool_executor).answer("how many holders") is None

    @pytest.mark.asyncio
    async def test_no_rules_means_no_answer(self, tool_executor):
        assert await IntentRouter(tool_executor, rules=[]).answer("how many holders") is None
        assert await IntentRouter(tool_executor).answer("compare kraken outflows this week") is None
