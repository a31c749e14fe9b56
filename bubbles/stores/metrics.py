"""Read access to the daily snapshot table (written by an external job)."""

from abc import ABC, abstractmethod
from typing import Iterable, List

from ..db.supabase_client import SupabaseClient
from ..types.conversations import DailyMetric


class MetricsStore(ABC):
    @abstractmethod
    async def recent(self, days: int = 7) -> List[DailyMetric]:
        """Newest ``days`` snapshots, newest first."""
        pass


class InMemoryMetricsStore(MetricsStore):
    def __init__(self, rows: Iterable[DailyMetric] = ()):
        self._rows = list(rows)

    async def recent(self, days: int = 7) -> List[DailyMetric]:
        return sorted(self._rows, key=lambda r: r.snapshot_date, reverse=True)[: max(days, 0)]


class SupabaseMetricsStore(MetricsStore):
    TABLE = "daily_metrics"

    def __init__(self, client: SupabaseClient):
        self.client = client

    async def recent(self, days: int = 7) -> List[DailyMetric]:
        rows = await self.client.select(self.TABLE, order=[("snapshot_date", False)], limit=days)
        return [DailyMetric(**row) for row in rows]
