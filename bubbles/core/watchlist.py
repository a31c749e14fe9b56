"""Large-transfer watchlist over the wallets of large holders."""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Dict, List

from ..providers.explorer import ExplorerProvider, hash_of
from .classification import (
    EXCHANGE_WALLETS,
    LARGE_TRANSACTION_THRESHOLD,
    classify_transaction,
    involves_large_holder,
    is_large_holder,
    to_decimal,
    wei_to_wco,
)
from .resolver import TieredResolver
from .recovery.errors import UnavailableError

logger = logging.getLogger(__name__)


class WhaleWatcher:
    """Recent large transfers touching a large holder, pressure-classified.

    Classification happens at read time against the current holder set, so a
    transfer may change label when the holder set changes.
    """

    def __init__(
        self,
        resolver: TieredResolver,
        explorer: ExplorerProvider,
        concurrency: int = 3,
    ):
        self.resolver = resolver
        self.explorer = explorer
        self.concurrency = concurrency

    async def large_holders(self) -> List[Dict[str, Any]]:
        records, _ = await self.resolver.fetch_records()
        return [
            {"address": r.address, "balance": float(r.balance), "label": r.label or f"{r.emoji} {r.category}"}
            for r in records
            if is_large_holder(r.balance)
        ]

    async def recent_transactions(
        self,
        min_value: Decimal = LARGE_TRANSACTION_THRESHOLD,
        limit: int = 20,
    ) -> Dict[str, Any]:
        try:
            holders = await self.large_holders()
        except UnavailableError as e:
            return {"error": e.message}

        holder_addresses = [h["address"] for h in holders]
        labels = {h["address"]: h["label"] for h in holders}
        semaphore = asyncio.Semaphore(self.concurrency)

        async def scan(holder: str) -> List[Dict[str, Any]]:
            async with semaphore:
                try:
                    page = await self.explorer.get_address_transactions(holder)
                except Exception as e:
                    logger.warning("Failed to fetch transactions for %s: %s", holder, e)
                    return []

            found = []
            for tx in page["items"]:
                sender, recipient = hash_of(tx.get("from")), hash_of(tx.get("to"))
                amount = wei_to_wco(tx.get("value"))
                if amount < to_decimal(min_value):
                    continue
                if not involves_large_holder(sender, recipient, holder_addresses):
                    continue
                classification = classify_transaction(sender, recipient, holder_addresses, EXCHANGE_WALLETS.keys())
                found.append({
                    "hash": tx.get("hash"),
                    "from": sender,
                    "to": recipient,
                    "amount": float(amount),
                    "timestamp": tx.get("timestamp"),
                    "classification": classification.value,
                    **classification.details,
                    "krakenWallet": holder,
                    "krakenLabel": labels.get(holder),
                })
            return found

        batches = await asyncio.gather(*(scan(h) for h in holder_addresses))

        unique: Dict[str, Dict[str, Any]] = {}
        for batch in batches:
            for tx in batch:
                unique.setdefault(tx["hash"], tx)
        transactions = sorted(unique.values(), key=lambda t: t.get("timestamp") or "", reverse=True)

        return {
            "transactions": transactions[: max(limit, 0)],
            "total": len(transactions),
            "largeHolderCount": len(holders),
            "minValue": float(to_decimal(min_value)),
            "pressureSummary": summarize_pressure(transactions),
        }


def summarize_pressure(transactions: List[Dict[str, Any]]) -> Dict[str, int]:
    summary: Dict[str, int] = {}
    for tx in transactions:
        summary[tx["classification"]] = summary.get(tx["classification"], 0) + 1
    return summary
