"""Abstract base class for all model providers.

Defines the ModelProvider interface that every LLM adapter must implement.
The streaming coordinator interacts exclusively through this interface;
it never calls provider SDKs directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from turnstream.schemas.config import ModelConfig, ProviderConfig


class ModelProvider(ABC):
    """Abstract interface for an LLM that can stream a chat turn.

    Initialized from the catalog entries for the model and its provider.
    Exposes identity and a single streaming method.
    """

    def __init__(self, config: ModelConfig, provider: ProviderConfig) -> None:
        self._config = config
        self._provider = provider

    # ── Identity ──────────────────────────────────────────────

    @property
    def provider_id(self) -> str:
        """Provider identifier (e.g. 'openrouter')."""
        return self._provider.id

    @property
    def model_id(self) -> str:
        """Public catalog model identifier."""
        return self._config.id

    # ── Core interface ────────────────────────────────────────

    @abstractmethod
    def stream_text(
        self,
        messages: list[dict],
        *,
        system: str = "",
    ) -> AsyncIterator[str]:
        """Open an upstream generation and yield text increments.

        The returned iterator is lazy, finite, and not restartable.
        Cancelling the task that iterates it aborts the upstream call.

        Args:
            messages: Conversation messages in OpenAI format, oldest first.
            system: Optional system prompt prepended to the messages.

        Yields:
            Non-empty text increments in generation order.

        Raises:
            TimeoutError: If the upstream call times out.
            RuntimeError: If the upstream call fails.
        """
