"""
Tiered Resolver

Every holder / category question is answered from the first data source that
produces wallets:

1. fast cache     - the pre-classified leaderboard table, no network call
2. secondary api  - one GraphQL query for the richest addresses, after an
                    introspection probe
3. paginated scan - sequential walk over the explorer ``/addresses`` pages

All three tiers turn raw balances into records through
``classification.build_wallet_record`` so category boundaries never depend on
which tier answered. Aggregation is a plain function over the record list and
is the only thing that differs between query kinds.
"""

import asyncio
import logging
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

from ..providers.explorer import ExplorerProvider, item_address, item_tx_count
from ..providers.graphql import GraphQLProvider
from ..stores.wallet_cache import WalletCacheStore
from ..types.wallets import WalletRecord
from .classification import (
    ALL_TIERS,
    FLAGSHIP_WALLETS,
    build_wallet_record,
    find_tier,
    wei_to_wco,
)
from .recovery.errors import RateLimitedError, UnavailableError

logger = logging.getLogger(__name__)

NO_DATA_SOURCE = "no data source available"

Aggregate = Callable[[List[WalletRecord]], Any]


class ResolverSource(str, Enum):
    FAST_CACHE = "fast_cache"
    SECONDARY_API = "secondary_api"
    PAGINATED_SCAN = "paginated_scan"


class HolderQueryKind(str, Enum):
    COUNT = "count"
    TOP_N = "topN"
    DISTRIBUTION = "distribution"
    CATEGORY_STATS = "categoryStats"


# ============================================================================
# Aggregations
# ============================================================================


def _round(value: Decimal, places: int = 2) -> float:
    return float(round(value, places))


def count_holders(records: List[WalletRecord]) -> Dict[str, Any]:
    return {
        "totalHolders": sum(1 for r in records if r.balance > 0),
        "totalAddresses": len(records),
    }


def top_holders(records: List[WalletRecord], limit: int = 10, category: Optional[str] = None) -> Dict[str, Any]:
    selected = records
    tier_name = None
    if category:
        tier = find_tier(category)
        if tier is None:
            raise ValueError(f"unknown category {category!r}")
        tier_name = tier.name
        selected = [r for r in records if r.category == tier_name]

    ranked = sorted(selected, key=lambda r: r.balance, reverse=True)
    return {
        "holders": [dict(rank=i + 1, **r.to_payload()) for i, r in enumerate(ranked[: max(limit, 0)])],
        "total": len(ranked),
        "category": tier_name,
    }


def distribution(records: List[WalletRecord], include_percentages: bool = True) -> Dict[str, Any]:
    counts = {tier.name: 0 for tier in ALL_TIERS}
    for record in records:
        counts[record.category] = counts.get(record.category, 0) + 1

    total = len(records)
    categories = []
    for tier in ALL_TIERS:
        entry: Dict[str, Any] = {"name": tier.name, "emoji": tier.emoji, "count": counts[tier.name]}
        if include_percentages:
            share = Decimal(counts[tier.name]) * 100 / total if total else Decimal(0)
            entry["percentage"] = _round(share)
        categories.append(entry)
    return {"categories": categories, "total": total}


def category_stats(records: List[WalletRecord], category: Optional[str] = None) -> Dict[str, Any]:
    total_balance = sum((r.balance for r in records), Decimal(0))
    tiers = ALL_TIERS
    if category:
        tier = find_tier(category)
        if tier is None:
            raise ValueError(f"unknown category {category!r}")
        tiers = (tier,)

    stats = []
    for tier in tiers:
        members = [r for r in records if r.category == tier.name]
        balance = sum((r.balance for r in members), Decimal(0))
        stats.append({
            "name": tier.name,
            "emoji": tier.emoji,
            "count": len(members),
            "totalBalance": _round(balance),
            "averageBalance": _round(balance / len(members)) if members else 0.0,
            "minBalance": _round(min(r.balance for r in members)) if members else 0.0,
            "maxBalance": _round(max(r.balance for r in members)) if members else 0.0,
            "shareOfBalance": _round(balance * 100 / total_balance) if total_balance else 0.0,
        })
    return {"categories": stats, "totalBalance": _round(total_balance), "totalWallets": len(records)}


def aggregate_for(kind: HolderQueryKind, params: Optional[Dict[str, Any]] = None) -> Aggregate:
    params = params or {}
    if kind is HolderQueryKind.COUNT:
        return count_holders
    if kind is HolderQueryKind.TOP_N:
        return lambda records: top_holders(records, int(params.get("limit", 10)), params.get("category"))
    if kind is HolderQueryKind.DISTRIBUTION:
        return lambda records: distribution(records, bool(params.get("includePercentages", True)))
    if kind is HolderQueryKind.CATEGORY_STATS:
        return lambda records: category_stats(records, params.get("category"))
    raise ValueError(f"unsupported holder query {kind!r}")


# ============================================================================
# Resolver
# ============================================================================


def _record_from(address: str, wei_balance: Any, transaction_count: Any) -> Optional[WalletRecord]:
    """One upstream row as a record; a row that cannot be read is skipped, not fatal."""
    try:
        return build_wallet_record(address, wei_to_wco(wei_balance), transaction_count or 0)
    except (ArithmeticError, TypeError, ValueError) as e:
        logger.warning("Skipping wallet %s with unreadable data: %s", address, e)
        return None


class TieredResolver:
    def __init__(
        self,
        wallet_cache: WalletCacheStore,
        graphql: GraphQLProvider,
        explorer: ExplorerProvider,
        *,
        secondary_limit: int = 5000,
        page_size: int = 50,
        page_delay_seconds: float = 0.05,
        max_pages: int = 100,
        max_records: int = 5000,
        rate_limit_delay_seconds: float = 2.0,
        rate_limit_retries: int = 3,
        backfill_flagship: bool = True,
        backfill_delay_seconds: float = 0.2,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        self.wallet_cache = wallet_cache
        self.graphql = graphql
        self.explorer = explorer
        self.secondary_limit = secondary_limit
        self.page_size = page_size
        self.page_delay_seconds = page_delay_seconds
        self.max_pages = max_pages
        self.max_records = max_records
        self.rate_limit_delay_seconds = rate_limit_delay_seconds
        self.rate_limit_retries = rate_limit_retries
        self.backfill_flagship = backfill_flagship
        self.backfill_delay_seconds = backfill_delay_seconds
        self._sleep = sleep or asyncio.sleep

    @classmethod
    def from_settings(cls, settings, wallet_cache, graphql, explorer, **kwargs) -> "TieredResolver":
        return cls(
            wallet_cache,
            graphql,
            explorer,
            secondary_limit=settings.secondary_page_limit,
            page_size=settings.scan_page_size,
            page_delay_seconds=settings.scan_page_delay_seconds,
            max_pages=settings.scan_max_pages,
            max_records=settings.scan_max_records,
            rate_limit_delay_seconds=settings.scan_rate_limit_delay_seconds,
            rate_limit_retries=settings.scan_rate_limit_retries,
            backfill_flagship=settings.backfill_flagship_wallets,
            **kwargs,
        )

    async def resolve(self, aggregate: Aggregate, backfill: bool = False) -> Dict[str, Any]:
        """``{result, source}`` from the first tier with data, else ``{error}``."""
        try:
            records, source = await self.fetch_records(backfill=backfill)
        except UnavailableError:
            return {"error": NO_DATA_SOURCE}
        return {"result": aggregate(records), "source": source.value}

    async def resolve_holder_query(
        self,
        kind: Union[HolderQueryKind, str],
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        kind = HolderQueryKind(kind)
        return await self.resolve(aggregate_for(kind, params), backfill=kind is HolderQueryKind.TOP_N)

    async def fetch_records(self, backfill: bool = False) -> Tuple[List[WalletRecord], ResolverSource]:
        """
        Records from the first tier with data.

        ``backfill`` adds missing flagship wallets whichever tier answered;
        only listings ask for it; count, distribution and category queries never do.
        """
        tiers: Sequence[Tuple[ResolverSource, Callable[[], Awaitable[List[WalletRecord]]]]] = (
            (ResolverSource.FAST_CACHE, self._from_cache),
            (ResolverSource.SECONDARY_API, self._from_secondary),
            (ResolverSource.PAGINATED_SCAN, self._from_scan),
        )
        for source, load in tiers:
            try:
                records = await load()
            except Exception as e:
                logger.warning("Resolver tier %s failed: %s", source.value, e)
                continue
            if records:
                if backfill:
                    records = await self._with_flagship_wallets(records)
                logger.info("Resolved %d wallets from %s", len(records), source.value)
                return sorted(records, key=lambda r: r.balance, reverse=True), source
            logger.info("Resolver tier %s returned no wallets", source.value)

        raise UnavailableError(NO_DATA_SOURCE)

    # -- Tier 1 ---------------------------------------------------------------

    async def _from_cache(self) -> List[WalletRecord]:
        return await self.wallet_cache.load()

    # -- Tier 2 ---------------------------------------------------------------

    async def _from_secondary(self) -> List[WalletRecord]:
        if not await self.graphql.test_connection():
            return []
        items = await self.graphql.get_top_addresses(self.secondary_limit)
        records: Dict[str, WalletRecord] = {}
        for item in items:
            address = item_address(item)
            if not address or address in records:
                continue
            record = _record_from(address, item.get("coinBalance"), item.get("transactionsCount"))
            if record is not None:
                records[address] = record
        return list(records.values())

    # -- Tier 3 ---------------------------------------------------------------

    async def _fetch_page(self, page_params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        for attempt in range(self.rate_limit_retries + 1):
            try:
                return await self.explorer.get_addresses_page(self.page_size, page_params)
            except RateLimitedError:
                if attempt >= self.rate_limit_retries:
                    raise
                logger.info("Explorer rate limited, waiting %.1fs", self.rate_limit_delay_seconds)
                await self._sleep(self.rate_limit_delay_seconds)
        raise RateLimitedError(provider=self.explorer.name)

    async def _from_scan(self) -> List[WalletRecord]:
        records: Dict[str, WalletRecord] = {}
        page_params: Optional[Dict[str, Any]] = None
        pages = 0

        while pages < self.max_pages and len(records) < self.max_records:
            try:
                page = await self._fetch_page(page_params)
            except Exception as e:
                if records:
                    logger.warning("Explorer scan stopped after %d pages: %s", pages, e)
                    break
                raise

            items = page["items"]
            if not items:
                break

            for item in items:
                address = item_address(item)
                if not address or address in records:
                    continue
                record = _record_from(address, item.get("coin_balance"), item_tx_count(item))
                if record is not None:
                    records[address] = record
                if len(records) >= self.max_records:
                    break

            pages += 1
            page_params = page.get("next_page_params")
            if not page_params:
                break
            await self._sleep(self.page_delay_seconds)

        logger.debug("Explorer scan read %d pages, %d wallets", pages, len(records))
        return list(records.values())

    # -- Flagship backfill ----------------------------------------------------

    async def _with_flagship_wallets(self, records: List[WalletRecord]) -> List[WalletRecord]:
        """Fetch treasury wallets that fell outside the API page window."""
        if not self.backfill_flagship:
            return records

        present = {r.address for r in records}
        missing = [address for address in FLAGSHIP_WALLETS if address not in present]
        extra: List[WalletRecord] = []
        for index, address in enumerate(missing):
            if index:
                await self._sleep(self.backfill_delay_seconds)
            try:
                data = await self.explorer.get_address(address)
            except Exception as e:
                logger.warning("Could not backfill flagship wallet %s: %s", address, e)
                continue
            extra.append(build_wallet_record(address, wei_to_wco(data.get("coin_balance")), item_tx_count(data)))
        return records + extra
