"""Universal LiteLLM adapter implementing the ModelProvider interface.

Routes streaming completion requests to any LLM provider via LiteLLM's
unified API. Retries transient failures with exponential backoff while
the stream is being opened; once the first increment has been yielded a
failure is final.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncIterator

import litellm

# Suppress LiteLLM's "Give Feedback / Get Help" and "Provider List" banners
litellm.suppress_debug_info = True

from turnstream.providers.base import ModelProvider
from turnstream.schemas.config import ModelConfig, ProviderConfig

logger = logging.getLogger(__name__)

# Max retries for transient failures while opening the stream
_MAX_RETRIES = 3
_BASE_BACKOFF = 1.0  # seconds


def _short_error_reason(error: Exception) -> str:
    """Extract a short, user-friendly reason from a LiteLLM error.

    Maps error types and status codes to concise descriptions instead
    of dumping full JSON error payloads.
    """
    error_str = str(error).lower()
    if "rate" in error_str or "429" in error_str:
        return "rate limit"
    if "overloaded" in error_str or "529" in error_str:
        return "overloaded"
    if "timeout" in error_str or isinstance(error, TimeoutError):
        return "timeout"
    if "503" in error_str or "unavailable" in error_str:
        return "service unavailable"
    if "500" in error_str or "internal" in error_str:
        return "server error"
    if "connection" in error_str:
        return "connection error"
    return str(error)[:80]


class LiteLLMProvider(ModelProvider):
    """Universal LLM adapter powered by LiteLLM.

    Routes calls to any provider (OpenRouter, OpenAI, Anthropic, ...)
    through litellm.acompletion(stream=True). This is the ONLY place
    models are called; no direct SDK imports anywhere else.
    """

    def __init__(self, config: ModelConfig, provider: ProviderConfig) -> None:
        super().__init__(config, provider)
        self._api_key = os.environ.get(provider.api_key_env, "")

    async def stream_text(
        self,
        messages: list[dict],
        *,
        system: str = "",
    ) -> AsyncIterator[str]:
        """Stream text increments from the upstream model.

        Args:
            messages: Conversation messages in OpenAI format.
            system: Optional system prompt.

        Yields:
            Each non-empty content delta as it arrives.
        """
        full_messages = [{"role": "system", "content": system}, *messages] if system else messages
        kwargs = self._build_completion_kwargs(full_messages)

        response = await self._call_streaming_with_retry(kwargs)
        try:
            async for chunk in response:
                delta = ""
                if chunk.choices and chunk.choices[0].delta:
                    delta = chunk.choices[0].delta.content or ""
                if delta:
                    yield delta
        finally:
            # Closing the wrapper releases the upstream HTTP stream on abort
            close = getattr(response, "aclose", None)
            if close is not None:
                await close()

    def _build_completion_kwargs(self, messages: list[dict]) -> dict:
        """Build the kwargs dict for litellm.acompletion.

        No explicit timeout: the generation call is governed by the
        library's defaults.
        """
        kwargs: dict = {
            "model": self._config.model,
            "messages": messages,
            "stream": True,
        }

        if self._api_key:
            kwargs["api_key"] = self._api_key

        if self._provider.api_base:
            kwargs["api_base"] = self._provider.api_base

        headers = self._attribution_headers()
        if headers:
            kwargs["extra_headers"] = headers

        return kwargs

    def _attribution_headers(self) -> dict[str, str]:
        """App attribution headers some routers use for rankings."""
        headers: dict[str, str] = {}
        if self._provider.referer_env:
            referer = os.environ.get(self._provider.referer_env, "")
            if referer:
                headers["HTTP-Referer"] = referer
        if self._provider.title_env:
            title = os.environ.get(self._provider.title_env, "")
            if title:
                headers["X-Title"] = title
        return headers

    async def _call_streaming_with_retry(self, kwargs: dict):
        """Call litellm.acompletion with stream=True and retry on failure.

        Retries on transient errors (rate limits, server errors, timeouts).
        Non-retryable errors (auth, invalid request) are raised immediately.

        Raises:
            TimeoutError: If all retries time out.
            RuntimeError: If all retries fail with non-timeout errors.
        """
        last_error: Exception | None = None

        for attempt in range(_MAX_RETRIES):
            try:
                return await litellm.acompletion(**kwargs)
            except TimeoutError:
                last_error = TimeoutError(
                    f"Streaming call timed out (attempt {attempt + 1}/{_MAX_RETRIES})"
                )
            except litellm.AuthenticationError:
                raise RuntimeError(
                    f"Authentication failed for {self._config.model}. "
                    f"Check that {self._provider.api_key_env} is set correctly."
                ) from None
            except litellm.BadRequestError as e:
                raise RuntimeError(
                    f"Bad request to {self._config.model}: {e}"
                ) from e
            except (
                litellm.RateLimitError,
                litellm.ServiceUnavailableError,
                litellm.InternalServerError,
                litellm.APIConnectionError,
            ) as e:
                last_error = e

            if attempt < _MAX_RETRIES - 1:
                backoff = _BASE_BACKOFF * (2**attempt)
                logger.warning(
                    "Streaming retry %d/%d for %s (%s, backoff: %.1fs)",
                    attempt + 1, _MAX_RETRIES, self._config.display_name,
                    _short_error_reason(last_error), backoff,
                )
                await asyncio.sleep(backoff)

        if isinstance(last_error, TimeoutError):
            raise last_error
        raise RuntimeError(
            f"Streaming call to {self._config.model} failed after "
            f"{_MAX_RETRIES} retries: {_short_error_reason(last_error)}"
        ) from last_error
