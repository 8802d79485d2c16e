"""Shared pytest fixtures for the Complyx test suite."""

from __future__ import annotations

import hashlib
import re
from collections.abc import AsyncIterator

import pytest

from complyx.interfaces.embedding_provider import IEmbeddingProvider
from complyx.interfaces.llm_provider import ILLMProvider
from complyx.models.rag import ChatMessage, LLMCompletion
from complyx.models.vectors import VectorMetadata, VectorRecord
from complyx.providers.vector_store.memory_provider import MemoryVectorStore
from complyx.services.embedding_service import EmbeddingService
from complyx.services.ingestion.ingestion_service import IngestionService
from complyx.services.rag_service import RAGService
from complyx.services.search_service import SearchService

# ---------------------------------------------------------------------------
# Mock providers
# ---------------------------------------------------------------------------

EMBEDDING_DIM = 256

_WORD = re.compile(r"[a-z0-9]+")


def bag_of_words_vector(text: str, dim: int = EMBEDDING_DIM) -> list[float]:
    """Deterministic vector: one hashed bucket per lower-cased word.

    Texts sharing words point in similar directions, identical texts score
    1.0 against each other, and text with no words is the zero vector.
    """
    vector = [0.0] * dim
    for word in _WORD.findall(text.lower()):
        bucket = int.from_bytes(hashlib.sha256(word.encode()).digest()[:4], "big") % dim
        vector[bucket] += 1.0
    return vector


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests."""

    def __init__(self, dimension: int = EMBEDDING_DIM) -> None:
        self._dimension = dimension
        self.calls: list[list[str]] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [bag_of_words_vector(text, self._dimension) for text in texts]

    async def embed_single(self, text: str) -> list[float]:
        return (await self.embed([text]))[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_model_name(self) -> str:
        return "mock-bow"

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


class MockLLMProvider(ILLMProvider):
    """Returns a fixed answer and records every prompt it receives."""

    def __init__(self, answer: str = "IFRS S2 requires disclosure of Scope 3 emissions.") -> None:
        self.answer = answer
        self.prompts: list[list[ChatMessage]] = []
        self.stream_closed = False

    async def complete(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> LLMCompletion:
        self.prompts.append(messages)
        return LLMCompletion(content=self.answer, model="mock-llm")

    async def stream(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> AsyncIterator[str]:
        self.prompts.append(messages)
        try:
            for word in self.answer.split(" "):
                yield word + " "
        finally:
            self.stream_closed = True

    def get_model_name(self) -> str:
        return "mock-llm"

    def get_provider_name(self) -> str:
        return "mock"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Service fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def memory_store() -> MemoryVectorStore:
    return MemoryVectorStore(dimension=EMBEDDING_DIM)


@pytest.fixture
def embedding_service(mock_embedding_provider: MockEmbeddingProvider) -> EmbeddingService:
    return EmbeddingService(mock_embedding_provider, chunk_size=200, chunk_overlap=20)


@pytest.fixture
def ingestion_service(
    embedding_service: EmbeddingService, memory_store: MemoryVectorStore
) -> IngestionService:
    return IngestionService(embedding_service, memory_store, batch_delay=0)


@pytest.fixture
def search_service(
    embedding_service: EmbeddingService, memory_store: MemoryVectorStore
) -> SearchService:
    return SearchService(embedding_service, memory_store, default_top_k=10, default_min_score=0.5)


@pytest.fixture
def mock_llm() -> MockLLMProvider:
    return MockLLMProvider()


@pytest.fixture
def rag_service(search_service: SearchService, mock_llm: MockLLMProvider) -> RAGService:
    return RAGService(search_service, mock_llm)


# ---------------------------------------------------------------------------
# Sample content
# ---------------------------------------------------------------------------


@pytest.fixture
def ifrs_s2_text() -> str:
    """Excerpt-style text about IFRS S2 climate disclosures."""
    return (
        "IFRS S2 Climate-related Disclosures requires an entity to disclose information "
        "about climate-related risks and opportunities. An entity shall disclose its "
        "absolute gross greenhouse gas emissions generated during the reporting period, "
        "expressed as metric tonnes of CO2 equivalent, classified as Scope 1, Scope 2 and "
        "Scope 3 emissions. Scope 3 emissions include upstream and downstream value chain "
        "emissions. The entity shall also disclose transition plans and climate resilience "
        "assessed through scenario analysis."
    )


@pytest.fixture
def lease_text() -> str:
    """Unrelated accounting text used as a distractor."""
    return (
        "IFRS 16 Leases sets out the principles for the recognition, measurement, "
        "presentation and disclosure of leases. A lessee recognises a right-of-use asset "
        "and a lease liability at the commencement date of the lease."
    )


async def seed_store(store: MemoryVectorStore, *entries: tuple[str, str, dict]) -> None:
    """Insert ``(record_id, text, metadata)`` entries embedded with :func:`bag_of_words_vector`.

    The document id defaults to the part of the record id before ``-chunk-``.
    """
    records = []
    for record_id, text, meta in entries:
        values = dict(meta)
        document_id = values.pop("document_id", record_id.split("-chunk-")[0])
        records.append(
            VectorRecord(
                id=record_id,
                vector=bag_of_words_vector(text, store.get_dimension()),
                metadata=VectorMetadata(text=text, document_id=document_id, **values),
            )
        )
    await store.insert_batch(records)
