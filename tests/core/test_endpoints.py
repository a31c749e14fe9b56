"""
Tests for JSON-RPC endpoint selection and its TTL cache.
"""

import pytest

from bubbles.core.endpoints import EndpointSelector
from bubbles.core.recovery.errors import EndpointUnavailableError

A = "https://rpc-a.example"
B = "https://rpc-b.example"


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeProbe:
    def __init__(self, healthy):
        self.healthy = set(healthy)
        self.calls = []

    async def __call__(self, url: str) -> str:
        self.calls.append(url)
        if url not in self.healthy:
            raise ConnectionError(f"{url} refused connection")
        return "171717"


class TestEndpointSelector:
    @pytest.mark.asyncio
    async def test_first_healthy_candidate_wins(self):
        probe = FakeProbe({B})
        selector = EndpointSelector([A, B], probe, ttl_seconds=300, clock=FakeClock())

        assert await selector.resolve() == B
        assert probe.calls == [A, B]

    @pytest.mark.asyncio
    async def test_cached_endpoint_is_reused_within_ttl(self):
        clock = FakeClock()
        probe = FakeProbe({B})
        selector = EndpointSelector([A, B], probe, ttl_seconds=300, clock=clock)

        await selector.resolve()
        clock.now = 299
        assert await selector.resolve() == B
        assert probe.calls == [A, B]

    @pytest.mark.asyncio
    async def test_expired_entry_triggers_reprobe(self):
        clock = FakeClock()
        probe = FakeProbe({B})
        selector = EndpointSelector([A, B], probe, ttl_seconds=300, clock=clock)

        await selector.resolve()
        clock.now = 300
        probe.healthy = {A, B}
        assert await selector.resolve() == A
        assert probe.calls == [A, B, A]

    @pytest.mark.asyncio
    async def test_no_candidate_answers(self):
        selector = EndpointSelector([A, B], FakeProbe(set()), clock=FakeClock())

        with pytest.raises(EndpointUnavailableError):
            await selector.resolve()
        assert selector.cached is None

    @pytest.mark.asyncio
    async def test_status_reports_unavailable(self):
        selector = EndpointSelector([A], FakeProbe(set()), clock=FakeClock())

        status = await selector.status()
        assert status["status"] == "unavailable"
        assert status["candidates"] == [A]
