"""OpenAI-compatible chat completion provider adapter.

Wraps the ``openai`` async client to implement :class:`ILLMProvider`, with
both a one-shot :meth:`complete` and a token-streaming :meth:`stream`.
When ``OPENAI_BASE_URL`` is set the client talks to that endpoint instead
of api.openai.com.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import openai
import structlog

from complyx.config.settings import Settings
from complyx.interfaces.llm_provider import ILLMProvider
from complyx.models.rag import ChatMessage, LLMCompletion
from complyx.utils.errors import ConfigurationError, LLMError

logger = structlog.get_logger(logger_name=__name__)


class OpenAILLMProvider(ILLMProvider):
    """LLM provider backed by an OpenAI-compatible chat completions API.

    Uses ``gpt-4o-mini`` unless ``OPENAI_TEXT_MODEL`` overrides it.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key

        client_kwargs: dict = {
            "api_key": self._api_key or "missing",
            "timeout": openai.Timeout(60.0, connect=5.0),
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._text_model = settings.openai_text_model or "gpt-4o-mini"
        self._provider_label = "openai-compatible" if settings.openai_base_url else "openai"

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> LLMCompletion:
        self._require_key()
        try:
            response = await self._client.chat.completions.create(
                model=self._text_model,
                messages=[message.model_dump() for message in messages],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APIError as exc:
            raise LLMError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content
        if content is None:
            raise LLMError(
                message=f"{self._provider_label} returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "openai_completion",
            model=self._text_model,
            provider=self._provider_label,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return LLMCompletion(content=content, model=response.model or self._text_model)

    async def stream(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> AsyncIterator[str]:
        self._require_key()
        try:
            response = await self._client.chat.completions.create(
                model=self._text_model,
                messages=[message.model_dump() for message in messages],
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
            )
            try:
                async for chunk in response:
                    if not chunk.choices:
                        continue
                    delta = chunk.choices[0].delta.content
                    if delta:
                        yield delta
            finally:
                await response.close()
        except openai.APIError as exc:
            raise LLMError(
                message=f"{self._provider_label} streaming error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def get_model_name(self) -> str:
        return self._text_model

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        return bool(self._api_key)

    def _require_key(self) -> None:
        if not self._api_key:
            raise ConfigurationError(
                message="OPENAI_API_KEY is not set; cannot call the chat API",
                provider_name=self.get_provider_name(),
            )
