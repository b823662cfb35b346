"""Abstract base for the agent providers, plus the errors they raise."""

from abc import ABC, abstractmethod
from collections.abc import Mapping

from consensus.models import CallOptions, ModelResponse, Turn

# Overloaded (529) and unavailable (503) are covered by the 5xx range.
_RETRYABLE_STATUSES = {429}


class ConfigurationError(Exception):
    """Raised before any call is made when a session cannot be set up."""


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(
        self,
        provider_name: str,
        message: str,
        *,
        status_code: int | None = None,
        retry_after: float | None = None,
        should_retry: bool = False,
    ) -> None:
        self.provider_name = provider_name
        self.status_code = status_code
        self.retry_after = retry_after
        self.should_retry = should_retry
        super().__init__(f"[{provider_name}] {message}")

    @classmethod
    def from_status(
        cls,
        provider_name: str,
        message: str,
        status_code: int | None,
        headers: Mapping[str, str] | None,
    ) -> "ProviderError":
        """Build an error from an HTTP status and the response headers."""
        headers = headers or {}
        retry_after: float | None = None
        raw_retry_after = headers.get("retry-after")
        if raw_retry_after is not None:
            try:
                retry_after = float(raw_retry_after)
            except ValueError:
                retry_after = None
        should_retry = str(headers.get("x-should-retry", "")).lower() == "true"
        return cls(
            provider_name,
            message,
            status_code=status_code,
            retry_after=retry_after,
            should_retry=should_retry,
        )

    @property
    def retryable(self) -> bool:
        if self.should_retry:
            return True
        if self.status_code is None:
            return False
        return self.status_code in _RETRYABLE_STATUSES or 500 <= self.status_code <= 599


class AIProvider(ABC):
    """Abstract base for all agent providers."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'claude', 'openai')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    async def generate(self, conversation: list[Turn], options: CallOptions) -> ModelResponse:
        """Generate the next assistant turn for a conversation.

        Args:
            conversation: Ordered user/assistant turns, starting with a user turn.
            options: Token budget, temperature and optional stop sequences.

        Returns:
            ModelResponse dataclass with content and metadata. Content may be
            empty if the model produced no text.

        Raises:
            ProviderError: On API failure or timeout. Carries the HTTP status
                and retry hints when the API supplied them.
        """
        ...
