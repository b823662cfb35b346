"""Unit tests for consensus/healthcheck.py — no real API calls."""

import asyncio
from unittest.mock import AsyncMock

from consensus.healthcheck import run_health_checks
from consensus.providers.base import ProviderError

from tests.conftest import MockProvider


class _SlowProvider(MockProvider):
    async def generate(self, conversation, options):
        await asyncio.sleep(1)
        return await super().generate(conversation, options)


async def test_all_providers_pass():
    """Both providers answer -> both ok, no errors."""
    providers = {"claude": MockProvider("claude"), "openai": MockProvider("openai")}

    results = await run_health_checks(providers)

    assert results == {"claude": (True, ""), "openai": (True, "")}


async def test_ping_is_small_unstopped_call():
    provider = MockProvider("claude")
    await run_health_checks({"claude": provider})

    (conversation, options), = provider.calls
    assert len(conversation) == 1
    assert conversation[0].role == "user"
    assert options.max_tokens == 16
    assert options.stop_sequences is None


async def test_one_provider_fails():
    """A provider that raises returns ok=False with the error message."""
    providers = {
        "claude": MockProvider("claude"),
        "openai": MockProvider("openai", reviews=[ProviderError("openai", "403 Forbidden", status_code=403)]),
    }

    results = await run_health_checks(providers)

    assert results["claude"] == (True, "")
    ok, err = results["openai"]
    assert ok is False
    assert "403" in err


async def test_timeout_is_reported(monkeypatch):
    monkeypatch.setattr("consensus.healthcheck._TIMEOUT_SEC", 0.01)

    results = await run_health_checks({"claude": _SlowProvider("claude")})

    ok, err = results["claude"]
    assert ok is False
    assert err == "TimeoutError"


async def test_empty_dict():
    assert await run_health_checks({}) == {}


async def test_unexpected_exception_is_caught():
    provider = MockProvider("openai")
    provider.generate = AsyncMock(side_effect=RuntimeError("socket closed"))

    results = await run_health_checks({"openai": provider})

    assert results["openai"] == (False, "socket closed")
    provider.generate.assert_awaited_once()
