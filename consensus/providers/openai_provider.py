"""OpenAI provider using openai SDK with native async."""

import asyncio
import logging
import os
import time

import openai
from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from consensus.models import CallOptions, ModelResponse, Turn
from consensus.providers.base import AIProvider, ConfigurationError, ProviderError

logger = logging.getLogger(__name__)


class OpenAIProvider(AIProvider):
    """OpenAI provider via openai SDK (also serves OpenAI-compatible endpoints)."""

    def __init__(self, config: ModelConfig, api_key: str | None = None) -> None:
        self._config = config
        api_key = (api_key or os.environ.get(config.api_key_env, "")).strip()
        if not api_key:
            raise ConfigurationError(f"[{config.name}] Missing API key: {config.api_key_env}")
        # Retries are owned by the transport layer.
        self._client = AsyncOpenAI(api_key=api_key, base_url=config.base_url, max_retries=0)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def generate(self, conversation: list[Turn], options: CallOptions) -> ModelResponse:
        request: dict = {
            "model": self._config.model,
            "messages": [{"role": t.role, "content": t.content} for t in conversation],
            "max_completion_tokens": options.max_tokens,
        }
        if options.temperature is not None:
            request["temperature"] = options.temperature
        if options.stop_sequences and self._config.use_stop_sequences:
            request["stop"] = options.stop_sequences

        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(**request),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except openai.APIStatusError as exc:
            raise ProviderError.from_status(
                self._config.name,
                f"API call failed: {exc.message}",
                exc.status_code,
                exc.response.headers,
            ) from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        choice = response.choices[0] if response.choices else None
        content = (choice.message.content or "").strip() if choice else ""
        if not content:
            logger.warning("OpenAI returned no text")

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.total_tokens

        logger.info("OpenAI call: %.2fs, %s tokens", latency, token_count)

        return ModelResponse(
            provider=self._config.name,
            model=self._config.model,
            content=content,
            latency_sec=latency,
            token_count=token_count,
        )
