"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Works against real OpenAI and OpenAI-compatible providers (TogetherAI,
Fireworks) via ``OPENAI_BASE_URL`` and ``OPENAI_EMBEDDING_MODEL``.
"""

from __future__ import annotations

import openai
import structlog

from complyx.config.settings import Settings
from complyx.interfaces.embedding_provider import IEmbeddingProvider
from complyx.utils.errors import ConfigurationError, RAGError

logger = structlog.get_logger(logger_name=__name__)

_OPENAI_BATCH_LIMIT = 2048
_DEFAULT_MODEL = "text-embedding-3-small"

# Models that accept the ``dimensions`` request parameter.
_MATRYOSHKA_PREFIX = "text-embedding-3"


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    The vector dimension comes from ``EMBEDDING_DIMENSION``.  For
    ``text-embedding-3-*`` models it is requested from the API directly;
    for other models the returned length is checked and a mismatch raises
    :class:`ConfigurationError`.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key

        client_kwargs: dict = {"api_key": self._api_key or "missing"}
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._model = settings.openai_embedding_model or _DEFAULT_MODEL
        self._dimension = settings.embedding_dimension
        self._provider_label = (
            "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"
        )

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors, splitting requests at the API batch limit."""
        if not texts:
            return []
        if not self._api_key:
            raise ConfigurationError(
                message="OPENAI_API_KEY is not set; cannot generate embeddings",
                provider_name=self.get_provider_name(),
            )

        request_kwargs: dict = {"model": self._model}
        if self._model.startswith(_MATRYOSHKA_PREFIX):
            request_kwargs["dimensions"] = self._dimension

        try:
            all_embeddings: list[list[float]] = []
            for start in range(0, len(texts), _OPENAI_BATCH_LIMIT):
                batch = texts[start : start + _OPENAI_BATCH_LIMIT]
                response = await self._client.embeddings.create(input=batch, **request_kwargs)
                all_embeddings.extend(item.embedding for item in response.data)
                logger.info(
                    "openai_embedding_batch",
                    model=self._model,
                    provider=self._provider_label,
                    batch_size=len(batch),
                    tokens=response.usage.total_tokens if response.usage else None,
                )
        except openai.APIError as exc:
            raise RAGError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        for vector in all_embeddings:
            if len(vector) != self._dimension:
                raise ConfigurationError(
                    message=(
                        f"Model {self._model} returned {len(vector)}-dim vectors; "
                        f"EMBEDDING_DIMENSION is {self._dimension}"
                    ),
                    provider_name=self.get_provider_name(),
                )
        return all_embeddings

    async def embed_single(self, text: str) -> list[float]:
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_model_name(self) -> str:
        return self._model

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)
