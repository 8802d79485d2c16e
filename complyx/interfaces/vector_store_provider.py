"""Abstract base class for vector-store service providers.

Defines the contract for storing, searching and deleting embedded chunks.
Implementations: an in-process reference store, Pinecone (managed, the
production path) and ChromaDB (local persistent).  The adapter pattern
keeps the ingestion and retrieval services independent of the backend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from complyx.models.filters import MetadataFilter
from complyx.models.vectors import ScoredRecord, VectorRecord

# Largest batch any backend accepts in a single write call.
MAX_BATCH_SIZE = 100


# Concrete implementations: MemoryVectorStore, PineconeVectorStore,
# ChromaDBVectorStore.  Located in: complyx/providers/vector_store/
class IVectorStoreProvider(ABC):
    """Contract for vector stores used by the ingestion and search services.

    All data methods are async so network-backed stores do not block the
    event loop.  Every inserted vector must have the dimension the store
    was configured with; a mismatch is a
    :class:`~complyx.utils.errors.ConfigurationError`, not a per-record
    failure.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Open the backend connection, creating remote resources if absent.

        Idempotent: calling it on a connected store is a no-op.
        """

    @abstractmethod
    async def disconnect(self) -> None:
        """Release the backend connection."""

    @abstractmethod
    def is_connected(self) -> bool:
        """Return ``True`` once :meth:`connect` has completed."""

    @abstractmethod
    async def insert(self, record: VectorRecord) -> None:
        """Insert or overwrite a single record."""

    @abstractmethod
    async def insert_batch(self, records: list[VectorRecord]) -> int:
        """Insert or overwrite many records.

        Records are written in batches of at most :data:`MAX_BATCH_SIZE`.
        Each batch is applied independently; a failure part-way through
        may leave earlier batches written.

        Returns
        -------
        int
            Number of records written.

        Raises
        ------
        complyx.utils.errors.ConfigurationError
            If any vector has the wrong dimension (checked before writing).
        complyx.utils.errors.RAGError
            If the backend write fails.
        """

    @abstractmethod
    async def search(
        self,
        query_vector: list[float],
        top_k: int = 10,
        filter: MetadataFilter | None = None,
    ) -> list[ScoredRecord]:
        """Return the *top_k* most similar records that satisfy *filter*.

        Parameters
        ----------
        query_vector:
            Embedding of the query; must match the store dimension.
        top_k:
            Maximum number of results, counted after filtering.
        filter:
            Optional metadata filter; ``None`` matches every record.

        Returns
        -------
        list[ScoredRecord]
            Results sorted by descending cosine similarity.
        """

    @abstractmethod
    async def delete(self, ids: list[str]) -> int:
        """Delete records by id; unknown ids are ignored.  Returns the count removed."""

    @abstractmethod
    async def get(self, record_id: str) -> VectorRecord | None:
        """Fetch a record by id, or ``None`` if absent."""

    @abstractmethod
    async def delete_by_document(self, document_id: str) -> int:
        """Delete every chunk belonging to *document_id*.  Returns the count removed."""

    @abstractmethod
    async def count_by_document(self, document_id: str) -> int:
        """Return how many chunks are stored for *document_id*."""

    @abstractmethod
    async def count(self) -> int:
        """Return the total number of stored records."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the vector dimension this store accepts."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short backend identifier, e.g. ``"pinecone"``."""
