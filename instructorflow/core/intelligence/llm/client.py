# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""LLM client using LiteLLM for multi-provider support.

LLMClient implements the GenerationPort on top of LiteLLM's streaming
acompletion(). API keys and endpoints are passed directly to acompletion()
rather than through environment variables.

Supported providers:
- Ollama: Local or remote LLM inference
- OpenAI: GPT-4o and friends
- Anthropic: Claude models
- Google: Gemini models

Example:
    >>> from instructorflow.core.intelligence.llm import CancellationToken, LLMClient
    >>> client = LLMClient()
    >>> async for chunk in client.generate_stream(request, 30.0, CancellationToken()):
    ...     print(chunk, end="", flush=True)
"""

import logging
from typing import TYPE_CHECKING, Any, AsyncIterator, Optional

import litellm
from litellm import acompletion

from instructorflow.core.config.settings import LLMSettings, get_settings
from instructorflow.core.intelligence.llm.port import CancellationToken, GenerationError

if TYPE_CHECKING:
    from instructorflow.core.prompts.request import StructuredRequest

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    litellm.Timeout,
    litellm.RateLimitError,
    litellm.ServiceUnavailableError,
    litellm.InternalServerError,
    litellm.APIConnectionError,
    TimeoutError,
)


class LLMClient:
    """GenerationPort backed by LiteLLM.

    Attributes:
        model: Model in LiteLLM format.
        max_tokens: Upper bound on generated tokens per request.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        llm_settings: Optional[LLMSettings] = None,
    ):
        """Initialize the LLM client.

        Args:
            model: Model in LiteLLM format. Falls back to the provider default.
            max_tokens: Token cap per response. Falls back to settings.
            llm_settings: LLM configuration. Uses get_settings() if None.
        """
        self._settings = llm_settings or get_settings().llm
        self._model = model or self._settings.get_default_model()
        self._max_tokens = max_tokens or self._settings.max_tokens

        litellm.drop_params = True

        logger.info("LLMClient initialized with model=%s", self._model)

    @property
    def model(self) -> str:
        return self._model

    def _provider_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {}
        api_base = self._settings.get_api_base()
        api_key = self._settings.get_api_key()
        if api_base:
            params["api_base"] = api_base
        if api_key:
            params["api_key"] = api_key
        return params

    def _map_error(self, error: Exception) -> GenerationError:
        transient = isinstance(error, TRANSIENT_ERRORS)
        return GenerationError(
            message=f"Streaming failed: {error}",
            transient=transient,
            model=self._model,
            original_error=error,
        )

    async def generate_stream(
        self,
        request: "StructuredRequest",
        deadline: float,
        cancel_token: CancellationToken,
    ) -> AsyncIterator[str]:
        """Stream a response for an assembled request.

        Yields nothing further once cancel_token is set; the provider stream
        is closed on the way out.

        Args:
            request: Assembled request; rendered with to_messages().
            deadline: Provider-side timeout in seconds.
            cancel_token: Cooperative cancellation signal.

        Yields:
            Text chunks as the provider produces them.

        Raises:
            GenerationError: transient for timeouts, rate limits, 5xx and
                connection failures; non-transient otherwise.
        """
        if cancel_token.is_cancelled:
            return

        try:
            response = await acompletion(
                model=self._model,
                messages=request.to_messages(),
                temperature=request.temperature,
                max_tokens=self._max_tokens,
                timeout=deadline,
                stream=True,
                **self._provider_params(),
            )
        except Exception as e:
            logger.error("Streaming request failed: model=%s, error=%s", self._model, str(e))
            raise self._map_error(e) from e

        try:
            async for chunk in response:
                if cancel_token.is_cancelled:
                    logger.debug("Stream cancelled: model=%s, reason=%s", self._model, cancel_token.reason)
                    break
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        except Exception as e:
            logger.error("Streaming failed: model=%s, error=%s", self._model, str(e))
            raise self._map_error(e) from e
        finally:
            # CustomStreamWrapper exposes aclose() only on some LiteLLM versions
            aclose = getattr(response, "aclose", None)
            if aclose is not None:
                await aclose()

    def __repr__(self) -> str:
        return f"LLMClient(model={self._model!r})"
