"""Anthropic Claude provider using anthropic SDK with native async."""

import asyncio
import logging
import os
import time

import anthropic as anthropic_sdk

from config.config_loader import ModelConfig
from consensus.models import CallOptions, ModelResponse, Turn
from consensus.providers.base import AIProvider, ConfigurationError, ProviderError

logger = logging.getLogger(__name__)


class AnthropicProvider(AIProvider):
    """Anthropic Claude provider via anthropic SDK."""

    def __init__(self, config: ModelConfig, api_key: str | None = None) -> None:
        self._config = config
        api_key = (api_key or os.environ.get(config.api_key_env, "")).strip()
        if not api_key:
            raise ConfigurationError(f"[{config.name}] Missing API key: {config.api_key_env}")
        # Retries are owned by the transport layer.
        self._client = anthropic_sdk.AsyncAnthropic(api_key=api_key, max_retries=0)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def generate(self, conversation: list[Turn], options: CallOptions) -> ModelResponse:
        request: dict = {
            "model": self._config.model,
            "max_tokens": options.max_tokens,
            "messages": [{"role": t.role, "content": t.content} for t in conversation],
        }
        if options.temperature is not None:
            request["temperature"] = options.temperature
        if options.stop_sequences and self._config.use_stop_sequences:
            request["stop_sequences"] = options.stop_sequences

        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.messages.create(**request),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except anthropic_sdk.APIStatusError as exc:
            raise ProviderError.from_status(
                self._config.name,
                f"API call failed: {exc.message}",
                exc.status_code,
                exc.response.headers,
            ) from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        text_blocks = [b.text for b in (response.content or []) if b.type == "text"]
        content = "\n".join(text_blocks)
        if not content:
            logger.warning("Anthropic returned no text (stop_reason=%s)", response.stop_reason)

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.input_tokens + response.usage.output_tokens

        logger.info(
            "Anthropic call: %.2fs, %s tokens, stop_reason=%s",
            latency,
            token_count,
            response.stop_reason,
        )

        return ModelResponse(
            provider=self._config.name,
            model=self._config.model,
            content=content,
            latency_sec=latency,
            token_count=token_count,
        )
