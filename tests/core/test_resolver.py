"""
Tests for the tiered holder resolver.

Every tier is faked; the assertions are about which tier answers, what the
caller is told about the source and how the scan behaves under rate limits.
"""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from bubbles.config import Settings
from bubbles.core.classification import FLAGSHIP_WALLETS, build_wallet_record
from bubbles.core.recovery.errors import RateLimitedError
from bubbles.core.resolver import (
    NO_DATA_SOURCE,
    HolderQueryKind,
    TieredResolver,
    category_stats,
    count_holders,
    distribution,
    top_holders,
)
from bubbles.stores.wallet_cache import InMemoryWalletCache

WEI = 10 ** 18


def _addr(n: int) -> str:
    return "0x" + f"{n:040x}"


def _explorer_item(n: int, wco: int) -> dict:
    return {"hash": _addr(n), "coin_balance": str(wco * WEI), "tx_count": "4"}


def _make_resolver(cache_records=(), graphql_items=None, graphql_up=True, pages=None, **kwargs):
    graphql = MagicMock()
    graphql.test_connection = AsyncMock(return_value=graphql_up)
    graphql.get_top_addresses = AsyncMock(return_value=graphql_items or [])

    explorer = MagicMock()
    explorer.name = "w-chain-explorer"
    explorer.get_addresses_page = AsyncMock(side_effect=pages or [{"items": [], "next_page_params": None}])
    explorer.get_address = AsyncMock(return_value={"coin_balance": str(7 * WEI)})

    kwargs.setdefault("backfill_flagship", False)
    resolver = TieredResolver(
        InMemoryWalletCache(cache_records),
        graphql,
        explorer,
        sleep=AsyncMock(),
        **kwargs,
    )
    return resolver, graphql, explorer


# =============================================================================
# Tier selection
# =============================================================================

class TestTierSelection:
    @pytest.mark.asyncio
    async def test_fast_cache_answers_without_network(self):
        records = [build_wallet_record(_addr(1), 6_000_000), build_wallet_record(_addr(2), 0)]
        resolver, graphql, explorer = _make_resolver(cache_records=records)

        result = await resolver.resolve_holder_query(HolderQueryKind.COUNT)

        assert result == {"result": {"totalHolders": 1, "totalAddresses": 2}, "source": "fast_cache"}
        graphql.test_connection.assert_not_awaited()
        explorer.get_addresses_page.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_secondary_api_when_cache_is_cold(self):
        items = [
            {"hash": _addr(1), "coinBalance": str(6_000_000 * WEI), "transactionsCount": 9},
            {"hash": _addr(2), "coinBalance": str(2_000 * WEI), "transactionsCount": 1},
        ]
        resolver, _, explorer = _make_resolver(graphql_items=items)

        result = await resolver.resolve_holder_query(HolderQueryKind.TOP_N, {"limit": 1})

        assert result["source"] == "secondary_api"
        assert result["result"]["holders"][0]["address"] == _addr(1)
        assert result["result"]["holders"][0]["category"] == "Kraken"
        explorer.get_addresses_page.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failing_secondary_falls_through_to_scan(self):
        pages = [
            {"items": [_explorer_item(1, 600_000), _explorer_item(2, 20)], "next_page_params": {"p": 2}},
            {"items": [_explorer_item(3, 0)], "next_page_params": None},
        ]
        resolver, graphql, _ = _make_resolver(pages=pages)
        graphql.test_connection.side_effect = RuntimeError("introspection failed")

        result = await resolver.resolve_holder_query(HolderQueryKind.DISTRIBUTION)

        assert result["source"] == "paginated_scan"
        counts = {c["name"]: c["count"] for c in result["result"]["categories"]}
        assert counts["Shark"] == 1
        assert counts["Shrimp"] == 1
        assert counts["Plankton"] == 1
        assert result["result"]["total"] == 3

    @pytest.mark.asyncio
    async def test_no_data_source(self):
        resolver, _, _ = _make_resolver(graphql_up=False)

        assert await resolver.resolve_holder_query("count") == {"error": NO_DATA_SOURCE}

    @pytest.mark.asyncio
    async def test_same_categories_regardless_of_tier(self):
        balance = Decimal("4999999.99")
        cached, _, _ = _make_resolver(cache_records=[build_wallet_record(_addr(5), balance)])
        scanned, _, _ = _make_resolver(
            graphql_up=False,
            pages=[{"items": [{"hash": _addr(5), "coin_balance": "4999999990000000000000000"}], "next_page_params": None}],
        )

        a = await cached.resolve_holder_query(HolderQueryKind.TOP_N)
        b = await scanned.resolve_holder_query(HolderQueryKind.TOP_N)
        assert a["result"]["holders"][0]["category"] == b["result"]["holders"][0]["category"] == "Whale"


# =============================================================================
# Paginated scan
# =============================================================================

class TestPaginatedScan:
    @pytest.mark.asyncio
    async def test_rate_limited_page_is_retried_after_delay(self):
        pages = [
            RateLimitedError(provider="w-chain-explorer"),
            {"items": [_explorer_item(1, 10)], "next_page_params": None},
        ]
        resolver, _, explorer = _make_resolver(graphql_up=False, pages=pages, rate_limit_delay_seconds=2.0)

        result = await resolver.resolve_holder_query(HolderQueryKind.COUNT)

        assert result["source"] == "paginated_scan"
        assert explorer.get_addresses_page.await_count == 2
        resolver._sleep.assert_any_await(2.0)

    @pytest.mark.asyncio
    async def test_partial_scan_is_kept_when_a_later_page_fails(self):
        pages = [
            {"items": [_explorer_item(1, 10)], "next_page_params": {"p": 2}},
            RuntimeError("explorer 502"),
        ]
        resolver, _, _ = _make_resolver(graphql_up=False, pages=pages)

        result = await resolver.resolve_holder_query(HolderQueryKind.COUNT)
        assert result["result"]["totalAddresses"] == 1

    @pytest.mark.asyncio
    async def test_page_ceiling(self):
        pages = [
            {"items": [_explorer_item(n, 10)], "next_page_params": {"p": n + 1}}
            for n in range(1, 10)
        ]
        resolver, _, explorer = _make_resolver(graphql_up=False, pages=pages, max_pages=3)

        result = await resolver.resolve_holder_query(HolderQueryKind.COUNT)
        assert result["result"]["totalAddresses"] == 3
        assert explorer.get_addresses_page.await_count == 3

    @pytest.mark.asyncio
    async def test_record_ceiling(self):
        pages = [
            {"items": [_explorer_item(3 * p + i, 10) for i in range(3)], "next_page_params": {"p": p + 1}}
            for p in range(5)
        ]
        resolver, _, explorer = _make_resolver(graphql_up=False, pages=pages, max_records=4)

        result = await resolver.resolve_holder_query(HolderQueryKind.COUNT)

        assert result["result"]["totalAddresses"] == 4
        assert explorer.get_addresses_page.await_count == 2

    @pytest.mark.asyncio
    async def test_duplicate_addresses_are_collapsed(self):
        pages = [{"items": [_explorer_item(1, 10), _explorer_item(1, 10)], "next_page_params": None}]
        resolver, _, _ = _make_resolver(graphql_up=False, pages=pages)

        result = await resolver.resolve_holder_query(HolderQueryKind.COUNT)
        assert result["result"]["totalAddresses"] == 1


class TestFlagshipBackfill:
    @pytest.mark.asyncio
    async def test_missing_flagship_wallets_are_listed(self):
        items = [{"hash": _addr(1), "coinBalance": str(10 * WEI)}]
        resolver, _, explorer = _make_resolver(graphql_items=items, backfill_flagship=True)

        result = await resolver.resolve_holder_query(HolderQueryKind.TOP_N, {"category": "Flagship", "limit": 50})

        assert explorer.get_address.await_count == len(FLAGSHIP_WALLETS)
        assert result["result"]["total"] == len(FLAGSHIP_WALLETS)

    @pytest.mark.asyncio
    async def test_cache_tier_listings_are_backfilled_too(self):
        resolver, _, explorer = _make_resolver(
            cache_records=[build_wallet_record(_addr(1), 10)],
            backfill_flagship=True,
        )

        result = await resolver.resolve_holder_query(HolderQueryKind.TOP_N, {"limit": 50})

        assert result["source"] == "fast_cache"
        assert explorer.get_address.await_count == len(FLAGSHIP_WALLETS)
        assert result["result"]["total"] == 1 + len(FLAGSHIP_WALLETS)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind", [
        HolderQueryKind.COUNT,
        HolderQueryKind.DISTRIBUTION,
        HolderQueryKind.CATEGORY_STATS,
    ])
    async def test_aggregates_never_backfill(self, kind):
        items = [{"hash": _addr(1), "coinBalance": str(10 * WEI)}]
        resolver, _, explorer = _make_resolver(graphql_items=items, backfill_flagship=True)

        await resolver.resolve_holder_query(kind)
        explorer.get_address.assert_not_awaited()


# =============================================================================
# Source transparency
# =============================================================================

# (address index, whole WCO) spread over Kraken, Whale, Shark, Crab, Shrimp, Plankton
SPREAD = [(1, 7_000_000), (2, 2_500_000), (3, 600_000), (4, 5_000), (5, 12), (6, 0)]


def _default_resolver(cache_records=(), pages=None):
    graphql = MagicMock()
    graphql.test_connection = AsyncMock(return_value=False)
    graphql.get_top_addresses = AsyncMock(return_value=[])

    explorer = MagicMock()
    explorer.name = "w-chain-explorer"
    explorer.get_addresses_page = AsyncMock(side_effect=pages or [{"items": [], "next_page_params": None}])
    explorer.get_address = AsyncMock(return_value={"coin_balance": str(3 * WEI), "tx_count": "2"})

    return TieredResolver.from_settings(
        Settings(_env_file=None),
        InMemoryWalletCache(cache_records),
        graphql,
        explorer,
        sleep=AsyncMock(),
    )


class TestSourceTransparency:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind, params", [
        (HolderQueryKind.COUNT, None),
        (HolderQueryKind.DISTRIBUTION, None),
        (HolderQueryKind.CATEGORY_STATS, None),
        (HolderQueryKind.CATEGORY_STATS, {"category": "Shark"}),
        (HolderQueryKind.TOP_N, {"limit": 50}),
    ])
    async def test_cache_and_scan_give_identical_results(self, kind, params):
        cached = _default_resolver(cache_records=[build_wallet_record(_addr(n), wco, 4) for n, wco in SPREAD])
        scanned = _default_resolver(pages=[
            {"items": [_explorer_item(n, wco) for n, wco in SPREAD[:3]], "next_page_params": {"p": 2}},
            {"items": [_explorer_item(n, wco) for n, wco in SPREAD[3:]], "next_page_params": None},
        ])

        from_cache = await cached.resolve_holder_query(kind, params)
        from_scan = await scanned.resolve_holder_query(kind, params)

        assert from_cache["source"] == "fast_cache"
        assert from_scan["source"] == "paginated_scan"
        assert from_cache["result"] == from_scan["result"]

    @pytest.mark.asyncio
    async def test_counts_cover_exactly_the_fetched_wallets(self):
        scanned = _default_resolver(pages=[
            {"items": [_explorer_item(n, wco) for n, wco in SPREAD], "next_page_params": None},
        ])

        result = await scanned.resolve_holder_query(HolderQueryKind.COUNT)
        assert result["result"] == {"totalHolders": 5, "totalAddresses": 6}


# =============================================================================
# Unreadable upstream rows
# =============================================================================

class TestUnreadableRows:
    @pytest.mark.asyncio
    async def test_bad_balances_do_not_sink_the_scan(self):
        pages = [{
            "items": [
                _explorer_item(1, 600_000),
                {"hash": _addr(2), "coin_balance": "n/a"},
                {"hash": _addr(3), "coin_balance": "NaN"},
                {"hash": _addr(4), "coin_balance": "Infinity"},
            ],
            "next_page_params": None,
        }]
        resolver, _, _ = _make_resolver(graphql_up=False, pages=pages)

        result = await resolver.resolve_holder_query(HolderQueryKind.DISTRIBUTION)

        assert result["source"] == "paginated_scan"
        counts = {c["name"]: c["count"] for c in result["result"]["categories"]}
        assert counts["Shark"] == 1
        assert counts["Plankton"] == 3

    @pytest.mark.asyncio
    async def test_unreadable_secondary_row_is_skipped(self):
        items = [
            {"hash": _addr(1), "coinBalance": str(2_000 * WEI), "transactionsCount": 3},
            {"hash": _addr(2), "coinBalance": "garbage", "transactionsCount": "many"},
        ]
        resolver, _, explorer = _make_resolver(graphql_items=items)

        result = await resolver.resolve_holder_query(HolderQueryKind.COUNT)

        assert result == {"result": {"totalHolders": 1, "totalAddresses": 1}, "source": "secondary_api"}
        explorer.get_addresses_page.assert_not_awaited()


# =============================================================================
# Aggregations
# =============================================================================

class TestAggregations:
    records = [
        build_wallet_record(_addr(1), 8_000_000),
        build_wallet_record(_addr(2), 6_000_000),
        build_wallet_record(_addr(3), 2_000_000),
        build_wallet_record(_addr(4), 0),
    ]

    def test_count(self):
        assert count_holders(self.records) == {"totalHolders": 3, "totalAddresses": 4}

    def test_top_holders_by_category(self):
        board = top_holders(self.records, limit=5, category="kraken")
        assert board["category"] == "Kraken"
        assert [h["rank"] for h in board["holders"]] == [1, 2]
        assert board["holders"][0]["balance"] == 8_000_000.0

    def test_top_holders_rejects_unknown_category(self):
        with pytest.raises(ValueError):
            top_holders(self.records, category="Megalodon")

    def test_distribution_percentages(self):
        result = distribution(self.records)
        kraken = next(c for c in result["categories"] if c["name"] == "Kraken")
        assert kraken["count"] == 2
        assert kraken["percentage"] == 50.0

    def test_category_stats(self):
        stats = category_stats(self.records, "Kraken")["categories"][0]
        assert stats["count"] == 2
        assert stats["totalBalance"] == 14_000_000.0
        assert stats["averageBalance"] == 7_000_000.0
        assert stats["shareOfBalance"] == 87.5
