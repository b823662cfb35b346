"""Tests for consensus/limiter.py and limiter use in AgentClient."""

import asyncio

from consensus.limiter import LimiterRegistry
from consensus.models import CallOptions, ModelResponse, Turn
from consensus.transport import AgentClient, CallStats
from tests.conftest import MockProvider, make_agent


async def test_registry_returns_same_semaphore():
    registry = LimiterRegistry({"claude": 1})
    assert registry.get("claude") is registry.get("claude")
    assert registry.get("claude") is not registry.get("openai")


async def test_registry_limit_only_applies_on_creation():
    registry = LimiterRegistry()
    registry.get("openai", 2)
    registry.get("openai", 5)
    assert registry.limit_for("openai") == 2


async def test_registry_caps_in_flight_work():
    registry = LimiterRegistry({"openai": 2})
    in_flight = 0
    peak = 0

    async def work() -> None:
        nonlocal in_flight, peak
        async with registry.get("openai"):
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1

    await asyncio.gather(*(work() for _ in range(6)))
    assert peak == 2


async def test_registry_fifo_order():
    registry = LimiterRegistry({"claude": 1})
    order: list[int] = []

    async def work(i: int) -> None:
        async with registry.get("claude"):
            order.append(i)
            await asyncio.sleep(0)

    await asyncio.gather(*(work(i) for i in range(5)))
    assert order == [0, 1, 2, 3, 4]


async def test_agent_client_respects_concurrency():
    in_flight = 0
    peak = 0

    class SlowProvider(MockProvider):
        async def generate(self, conversation, options):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return ModelResponse(self.name(), "mock-model", "ok", 0.01, 1)

    registry = LimiterRegistry()
    agent = make_agent(SlowProvider("claude"), "Claude", concurrency=1)
    client_a = AgentClient(agent, registry, CallStats())
    client_b = AgentClient(agent, registry, CallStats())
    options = CallOptions(max_tokens=10)

    await asyncio.gather(
        client_a.call([Turn("user", "1")], options),
        client_b.call([Turn("user", "2")], options),
        client_a.call([Turn("user", "3")], options),
    )
    assert peak == 1
