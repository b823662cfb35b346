"""Retrying, rate-limited wrapper around a single agent call."""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from config.config_loader import ModelConfig, RetryConfig
from consensus.limiter import LimiterRegistry
from consensus.models import CallOptions, Turn
from consensus.providers.base import AIProvider, ProviderError

logger = logging.getLogger(__name__)


@dataclass
class CallStats:
    """Session-scoped call counter reported in terminal progress events."""

    calls: int = 0


@dataclass
class Agent:
    """One of the two symmetric solver/reviewer identities."""

    provider: AIProvider
    label: str
    max_tokens: int
    temperature: float | None
    review_temperature: float | None
    concurrency: int
    retry: RetryConfig

    @classmethod
    def from_config(cls, provider: AIProvider, config: ModelConfig) -> "Agent":
        return cls(
            provider=provider,
            label=config.display_name(),
            max_tokens=config.max_tokens,
            temperature=config.temperature,
            review_temperature=config.review_temperature,
            concurrency=config.concurrency,
            retry=config.retry,
        )

    @property
    def name(self) -> str:
        return self.provider.name()


def backoff_delay(retry: RetryConfig, attempt: int, error: ProviderError, rng: Callable[[], float] = random.random) -> float:
    """Seconds to wait before the next attempt.

    A positive ``retry-after`` hint wins (capped); otherwise exponential
    backoff capped at ``max_delay_sec`` plus random jitter.
    """
    if error.retry_after is not None and error.retry_after > 0:
        return min(retry.retry_after_cap_sec, error.retry_after)
    exp = min(retry.max_delay_sec, retry.base_delay_sec * (2 ** attempt))
    return exp + rng() * retry.jitter_sec


class AgentClient:
    """Calls one agent through its limiter with the agent's retry policy."""

    def __init__(
        self,
        agent: Agent,
        limiters: LimiterRegistry,
        stats: CallStats,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self.agent = agent
        self._limiter = limiters.get(agent.name, agent.concurrency)
        self._stats = stats
        self._sleep = sleep
        self._rng = rng

    async def call(self, conversation: list[Turn], options: CallOptions) -> str:
        """Return the agent's text output.

        Retryable failures are retried up to ``max_retries`` times. When
        retries run out the result is an empty string rather than an error.

        Raises:
            ProviderError: On a non-retryable failure.
        """
        retry = self.agent.retry
        async with self._limiter:
            for attempt in range(retry.max_retries + 1):
                self._stats.calls += 1
                try:
                    response = await self.agent.provider.generate(conversation, options)
                    return response.content
                except ProviderError as exc:
                    if not exc.retryable:
                        raise
                    if attempt == retry.max_retries:
                        logger.warning(
                            "[Retry] %s gave up after %d retries (status=%s)",
                            self.agent.label, retry.max_retries, exc.status_code,
                        )
                        break
                    wait = backoff_delay(retry, attempt, exc, self._rng)
                    logger.warning(
                        "[Retry] %s status=%s wait=%.2fs attempt=%d/%d",
                        self.agent.label, exc.status_code, wait, attempt + 1, retry.max_retries,
                    )
                    await self._sleep(wait)
        return ""
