"""Embedding adapter: text → vectors, documents → embedded chunks.

Sits between the ingestion/search services and an
:class:`IEmbeddingProvider`.  Provider failures propagate unchanged; there
is no zero-vector fallback because a fake vector would silently corrupt
similarity rankings.
"""

from __future__ import annotations

import structlog

from complyx.interfaces.embedding_provider import IEmbeddingProvider
from complyx.models.documents import Chunk, EmbeddingResult
from complyx.services.ingestion.chunker import TextChunker
from complyx.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

# Texts sent to the provider per request.
EMBEDDING_BATCH_SIZE = 10


class EmbeddingService:
    """Generates embeddings and chunks documents.

    Parameters
    ----------
    provider:
        The embedding backend.
    chunk_size / chunk_overlap:
        Default chunking window, overridable per call.
    """

    def __init__(
        self,
        provider: IEmbeddingProvider,
        chunk_size: int = 500,
        chunk_overlap: int = 50,
    ) -> None:
        self._provider = provider
        self._default_chunker = TextChunker(chunk_size=chunk_size, overlap=chunk_overlap)

    @property
    def dimension(self) -> int:
        return self._provider.get_dimension()

    @property
    def provider_name(self) -> str:
        return self._provider.get_provider_name()

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        vector = await self._provider.embed_single(text)
        self._check_dimension(vector)
        return EmbeddingResult(
            embedding=vector,
            model=self._provider.get_model_name(),
            dimension=len(vector),
        )

    async def generate_embeddings(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts* in batches of :data:`EMBEDDING_BATCH_SIZE`, preserving order."""
        vectors: list[list[float]] = []
        for start in range(0, len(texts), EMBEDDING_BATCH_SIZE):
            batch = texts[start : start + EMBEDDING_BATCH_SIZE]
            embedded = await self._provider.embed(batch)
            if len(embedded) != len(batch):
                raise ConfigurationError(
                    message=(
                        f"Embedding provider returned {len(embedded)} vectors "
                        f"for {len(batch)} inputs"
                    ),
                    provider_name=self._provider.get_provider_name(),
                )
            for vector in embedded:
                self._check_dimension(vector)
            vectors.extend(embedded)
        return vectors

    def chunk_document(
        self,
        document_id: str,
        full_text: str,
        chunk_size: int | None = None,
        chunk_overlap: int | None = None,
    ) -> list[Chunk]:
        chunker = self._default_chunker
        if chunk_size is not None or chunk_overlap is not None:
            chunker = TextChunker(
                chunk_size=chunk_size if chunk_size is not None else chunker.chunk_size,
                overlap=chunk_overlap if chunk_overlap is not None else chunker.overlap,
            )
        return chunker.chunk(document_id, full_text)

    async def process_document(
        self,
        document_id: str,
        full_text: str,
        chunk_size: int | None = None,
        chunk_overlap: int | None = None,
    ) -> list[tuple[Chunk, list[float]]]:
        """Chunk a document and embed every chunk."""
        chunks = self.chunk_document(document_id, full_text, chunk_size, chunk_overlap)
        vectors = await self.generate_embeddings([chunk.text for chunk in chunks])
        logger.info("document_embedded", document_id=document_id, chunks=len(chunks))
        return list(zip(chunks, vectors, strict=True))

    def _check_dimension(self, vector: list[float]) -> None:
        expected = self._provider.get_dimension()
        if len(vector) != expected:
            raise ConfigurationError(
                message=f"Embedding has {len(vector)} dimensions, expected {expected}",
                provider_name=self._provider.get_provider_name(),
            )
