"""Abstract base class for chat-completion providers.

The RAG orchestrator consumes generation as a black box: "complete text
given messages" and "stream tokens given messages".
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from complyx.models.rag import ChatMessage, LLMCompletion


# Concrete implementation: OpenAILLMProvider (complyx/providers/llm/)
class ILLMProvider(ABC):
    """Contract for LLM services used by :class:`~complyx.services.rag_service.RAGService`."""

    @abstractmethod
    async def complete(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> LLMCompletion:
        """Generate a full completion for *messages*.

        Raises
        ------
        complyx.utils.errors.LLMError
            If the API call fails or returns an empty response.
        """

    @abstractmethod
    def stream(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> AsyncIterator[str]:
        """Yield the completion for *messages* as incremental text chunks.

        Implementations are async generators; closing the generator early
        must stop the upstream request.
        """

    @abstractmethod
    def get_model_name(self) -> str:
        """Return the model used for completions."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured with credentials."""
