"""
Read side of the wallet leaderboard cache.

The table is refreshed wholesale by an external batch job; the engine only
reads it. Stored categories are not trusted: every row is re-classified on
read so cache contents can never disagree with the live tier table.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List

from ..core.classification import build_wallet_record
from ..db.supabase_client import SupabaseClient
from ..types.wallets import WalletRecord

logger = logging.getLogger(__name__)


class WalletCacheStore(ABC):
    @abstractmethod
    async def load(self) -> List[WalletRecord]:
        """All cached wallets, richest first. Empty when the cache is cold."""
        pass


class InMemoryWalletCache(WalletCacheStore):
    def __init__(self, records: Iterable[WalletRecord] = ()):
        self._records: List[WalletRecord] = list(records)

    def replace(self, records: Iterable[WalletRecord]) -> None:
        self._records = list(records)

    async def load(self) -> List[WalletRecord]:
        return sorted(self._records, key=lambda r: r.balance, reverse=True)


class SupabaseWalletCache(WalletCacheStore):
    TABLE = "wallet_leaderboard_cache"
    PAGE_SIZE = 1000

    def __init__(self, client: SupabaseClient, max_rows: int = 10000):
        self.client = client
        self.max_rows = max_rows

    @staticmethod
    def _record(row: Dict[str, Any]) -> WalletRecord:
        return build_wallet_record(
            row["address"],
            row.get("balance") or 0,
            row.get("transaction_count") or 0,
        )

    async def load(self) -> List[WalletRecord]:
        rows: List[Dict[str, Any]] = []
        # PostgREST caps one response at its max-rows setting, so page with offset.
        while len(rows) < self.max_rows:
            batch = await self.client.select(
                self.TABLE,
                order=[("balance", False)],
                limit=self.PAGE_SIZE,
                offset=len(rows),
                columns="address,balance,transaction_count",
            )
            rows.extend(batch)
            if len(batch) < self.PAGE_SIZE:
                break

        logger.debug("Loaded %d rows from %s", len(rows), self.TABLE)
        return [self._record(row) for row in rows if row.get("address")]

