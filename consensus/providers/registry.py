"""Map the ``sdk`` field of a model config to its provider class."""

from config.config_loader import ModelConfig
from consensus.providers.anthropic import AnthropicProvider
from consensus.providers.base import AIProvider, ConfigurationError
from consensus.providers.openai_provider import OpenAIProvider

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
}


def build_provider(config: ModelConfig, api_key: str | None = None) -> AIProvider:
    """Instantiate the provider for ``config``.

    Raises:
        ConfigurationError: Unknown sdk or missing credential.
    """
    provider_cls = PROVIDER_CLASSES.get(config.sdk)
    if provider_cls is None:
        raise ConfigurationError(f"[{config.name}] Unknown sdk '{config.sdk}'")
    return provider_cls(config, api_key=api_key)  # type: ignore[call-arg]
