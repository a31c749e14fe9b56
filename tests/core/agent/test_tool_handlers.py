"""
Handler-level tests for the explorer, market and store tools.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from bubbles.core.agent.tool_args import ToolName
from bubbles.core.agent.tools import ToolRegistry
from bubbles.core.classification import BURN_ADDRESSES
from bubbles.stores.knowledge import InMemoryKnowledgeStore
from bubbles.stores.metrics import InMemoryMetricsStore
from bubbles.types.conversations import DailyMetric, KnowledgeEntry

WEI = 10 ** 18
ADDRESS = "0x" + "12" * 20
NOW = datetime(2025, 6, 2, 12, 0, tzinfo=timezone.utc)


def _tx(value_wco, timestamp, sender=ADDRESS, recipient=BURN_ADDRESSES[-1]):
    return {
        "hash": "0x" + "f" * 64,
        "from": {"hash": sender},
        "to": {"hash": recipient},
        "value": str(value_wco * WEI),
        "fee": {"value": str(WEI // 1000)},
        "timestamp": timestamp,
        "status": "ok",
        "block_number": 42,
    }


class TestExplorerTools:
    @pytest.mark.asyncio
    async def test_wallet_transactions_are_summarized(self, tool_executor, tool_deps):
        tool_deps.explorer.get_address_transactions = AsyncMock(return_value={
            "items": [_tx(5, "2025-06-02T10:00:00Z"), _tx(7, "2025-06-02T09:00:00Z")],
            "next_page_params": None,
        })

        result = await tool_executor.execute(
            ToolName.GET_WALLET_TRANSACTIONS.value,
            {"address": ADDRESS, "direction": "from", "limit": 1},
        )

        tool_deps.explorer.get_address_transactions.assert_awaited_once_with(ADDRESS, direction="from")
        assert result["hasMore"] is True
        assert result["transactions"] == [{
            "hash": "0x" + "f" * 64,
            "from": ADDRESS,
            "to": BURN_ADDRESSES[-1],
            "value": 5.0,
            "fee": 0.001,
            "timestamp": "2025-06-02T10:00:00Z",
            "status": "ok",
            "method": None,
            "block": 42,
        }]

    @pytest.mark.asyncio
    async def test_invalid_direction(self, tool_executor):
        result = await tool_executor.execute(
            ToolName.GET_WALLET_TRANSACTIONS.value,
            {"address": ADDRESS, "direction": "sideways"},
        )
        assert result["category"] == "malformed"

    @pytest.mark.asyncio
    async def test_burn_stats_compare_the_last_two_days(self, tool_executor, tool_deps):
        tool_deps.explorer.get_address = AsyncMock(return_value={"coin_balance": str(1_000 * WEI)})
        tool_deps.explorer.get_address_transactions = AsyncMock(return_value={
            "items": [
                _tx(30, "2025-06-02T08:00:00Z"),
                _tx(10, "2025-06-01T20:00:00Z"),
                _tx(20, "2025-06-01T06:00:00Z"),
                _tx(99, "2025-05-20T06:00:00Z"),
            ],
            "next_page_params": None,
        })

        with patch.object(ToolRegistry, "_now", return_value=NOW):
            result = await tool_executor.execute(ToolName.GET_BURN_STATS.value)

        assert result["totalBurned"] == 1000.0
        assert result["burned24h"] == 40.0
        assert result["burnedPrevious24h"] == 20.0
        assert result["change24hPercent"] == 100.0


class TestChainAndMarketTools:
    @pytest.mark.asyncio
    async def test_native_balance_passes_through(self, tool_executor, tool_deps):
        tool_deps.chain.get_balance = AsyncMock(return_value={"address": ADDRESS, "balance": 3.0})

        result = await tool_executor.execute(ToolName.GET_NATIVE_BALANCE.value, {"address": ADDRESS})

        tool_deps.chain.get_balance.assert_awaited_once_with(ADDRESS)
        assert result["balance"] == 3.0

    @pytest.mark.asyncio
    async def test_price_history_summary(self, tool_executor, tool_deps):
        tool_deps.coingecko.get_market_chart = AsyncMock(return_value=[
            {"timestamp": 1, "price": 0.10},
            {"timestamp": 2, "price": 0.15},
            {"timestamp": 3, "price": 0.12},
        ])

        result = await tool_executor.execute(ToolName.GET_PRICE_HISTORY.value, {"days": 3})

        assert result["start"] == 0.10
        assert result["end"] == 0.12
        assert result["high"] == 0.15
        assert result["changePercent"] == 20.0

    @pytest.mark.asyncio
    async def test_empty_market_data_is_an_error(self, tool_executor, tool_deps):
        tool_deps.coingecko.get_market_data = AsyncMock(return_value={})

        result = await tool_executor.execute(ToolName.GET_MARKET_DATA.value)
        assert result == {"error": "no market data for WCO"}


class TestStoreTools:
    @pytest.mark.asyncio
    async def test_daily_metrics(self, tool_executor, tool_deps):
        tool_deps.metrics = InMemoryMetricsStore([DailyMetric(snapshot_date="2025-06-01", total_holders=1500)])

        result = await tool_executor.execute(ToolName.GET_DAILY_METRICS.value, {"days": 7})
        assert result["metrics"][0]["total_holders"] == 1500

    @pytest.mark.asyncio
    async def test_no_daily_metrics(self, tool_executor, tool_deps):
        tool_deps.metrics = InMemoryMetricsStore()

        result = await tool_executor.execute(ToolName.GET_DAILY_METRICS.value)
        assert result == {"error": "no daily metrics recorded"}

    @pytest.mark.asyncio
    async def test_knowledge_search(self, tool_executor, tool_deps):
        tool_deps.knowledge = InMemoryKnowledgeStore([
            KnowledgeEntry(title="Burns", content="WCO burns happen on every transaction."),
        ])

        result = await tool_executor.execute(ToolName.SEARCH_KNOWLEDGE_BASE.value, {"query": "how do burns work"})
        assert [e["title"] for e in result["entries"]] == ["Burns"]
