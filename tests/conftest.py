"""Shared pytest fixtures."""

import json
from datetime import date

import pytest

from config.config_loader import AppConfig, ModelConfig, PromptsConfig, RetryConfig, load_config
from consensus.heuristics import COMPLETION_MARKER
from consensus.models import CallOptions, ModelResponse, Turn
from consensus.providers.base import AIProvider
from consensus.transport import Agent

TODAY = date(2026, 1, 15)


def review_json(
    decision: str = "ACCEPT",
    is_complete: bool = True,
    has_unsupported_claims: bool = False,
    has_contradictions: bool = False,
    confidence: float = 0.9,
    issues: list[str] | None = None,
    suggestions: list[str] | None = None,
) -> str:
    return json.dumps({
        "decision": decision,
        "is_complete": is_complete,
        "has_unsupported_claims": has_unsupported_claims,
        "has_contradictions": has_contradictions,
        "issues": issues or [],
        "suggestions": suggestions or [],
        "confidence": confidence,
    })


def complete_answer(text: str = "The answer is forty-two.") -> str:
    return f"{text}\n{COMPLETION_MARKER}"


class MockProvider(AIProvider):
    """Test double that replays scripted outputs.

    Solve calls (stop sequences set) pop from ``solves``; review calls pop
    from ``reviews``. An Exception in a script is raised instead of returned.
    Every call is recorded in ``calls``.
    """

    def __init__(
        self,
        provider_name: str = "mock",
        solves: list | None = None,
        reviews: list | None = None,
    ) -> None:
        self._name = provider_name
        self.solves = list(solves or [])
        self.reviews = list(reviews or [])
        self.calls: list[tuple[list[Turn], CallOptions]] = []

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    @property
    def solve_calls(self) -> list[tuple[list[Turn], CallOptions]]:
        return [c for c in self.calls if c[1].stop_sequences]

    @property
    def review_calls(self) -> list[tuple[list[Turn], CallOptions]]:
        return [c for c in self.calls if not c[1].stop_sequences]

    async def generate(self, conversation: list[Turn], options: CallOptions) -> ModelResponse:
        self.calls.append((list(conversation), options))
        script = self.solves if options.stop_sequences else self.reviews
        default = complete_answer() if options.stop_sequences else review_json()
        item = script.pop(0) if script else default
        if isinstance(item, Exception):
            raise item
        return ModelResponse(
            provider=self._name,
            model="mock-model",
            content=item,
            latency_sec=0.01,
            token_count=10,
        )


def make_agent(provider: AIProvider, label: str, max_retries: int = 2, concurrency: int = 1) -> Agent:
    return Agent(
        provider=provider,
        label=label,
        max_tokens=4000,
        temperature=None,
        review_temperature=None,
        concurrency=concurrency,
        retry=RetryConfig(
            max_retries=max_retries,
            base_delay_sec=0.0,
            max_delay_sec=0.0,
            jitter_sec=0.0,
            retry_after_cap_sec=0.0,
        ),
    )


@pytest.fixture
def app_config() -> AppConfig:
    """The shipped settings.yaml."""
    return load_config()


@pytest.fixture
def prompts(app_config: AppConfig) -> PromptsConfig:
    return app_config.prompts


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="test_model",
        sdk="anthropic",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=1024,
        label="Tester",
    )


@pytest.fixture
def primary_provider() -> MockProvider:
    return MockProvider("claude")


@pytest.fixture
def secondary_provider() -> MockProvider:
    return MockProvider("openai")


@pytest.fixture
def primary_agent(primary_provider: MockProvider) -> Agent:
    return make_agent(primary_provider, "Claude")


@pytest.fixture
def secondary_agent(secondary_provider: MockProvider) -> Agent:
    return make_agent(secondary_provider, "GPT", concurrency=2)
