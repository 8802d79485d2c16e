"""In-process vector store.

Holds every record in a dict and scores candidates with numpy.  Nothing is
persisted across restarts; used for development, tests and small
deployments.
"""

from __future__ import annotations

import numpy as np
import structlog

from complyx.interfaces.vector_store_provider import MAX_BATCH_SIZE, IVectorStoreProvider
from complyx.models.filters import MetadataFilter, evaluate
from complyx.models.vectors import ScoredRecord, VectorRecord
from complyx.providers.vector_store.common import check_batch_dimensions, check_dimension
from complyx.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity of two equal-length vectors.

    Unequal lengths raise :class:`ConfigurationError`.  A zero-magnitude
    vector scores 0.
    """
    if len(a) != len(b):
        raise ConfigurationError(
            message=f"Cannot compare vectors of length {len(a)} and {len(b)}",
            provider_name="memory",
        )
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denominator = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denominator == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denominator)


class MemoryVectorStore(IVectorStoreProvider):
    """Reference :class:`IVectorStoreProvider` backed by a Python dict.

    Filtering is an exact evaluation of the filter tree against each
    record's metadata, applied before ranking and truncation.
    """

    def __init__(self, dimension: int) -> None:
        if dimension <= 0:
            raise ConfigurationError(
                message=f"Embedding dimension must be positive, got {dimension}",
                provider_name=self.get_provider_name(),
            )
        self._dimension = dimension
        self._records: dict[str, VectorRecord] = {}
        self._connected = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        if self._connected:
            return
        self._connected = True
        logger.info("memory_store_connected", dimension=self._dimension)

    async def disconnect(self) -> None:
        self._connected = False
        logger.info("memory_store_disconnected", records=len(self._records))

    def is_connected(self) -> bool:
        return self._connected

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert(self, record: VectorRecord) -> None:
        await self.insert_batch([record])

    async def insert_batch(self, records: list[VectorRecord]) -> int:
        if not records:
            return 0
        await self.connect()
        check_batch_dimensions(records, self._dimension, self.get_provider_name())

        stored = 0
        for start in range(0, len(records), MAX_BATCH_SIZE):
            for record in records[start : start + MAX_BATCH_SIZE]:
                self._records[record.id] = record
                stored += 1

        logger.debug("memory_store_insert_batch", count=stored, total=len(self._records))
        return stored

    async def delete(self, ids: list[str]) -> int:
        removed = 0
        for record_id in ids:
            if self._records.pop(record_id, None) is not None:
                removed += 1
        return removed

    async def delete_by_document(self, document_id: str) -> int:
        ids = [
            record.id
            for record in self._records.values()
            if record.metadata.document_id == document_id
        ]
        removed = await self.delete(ids)
        logger.info("memory_store_delete_document", document_id=document_id, deleted=removed)
        return removed

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def search(
        self,
        query_vector: list[float],
        top_k: int = 10,
        filter: MetadataFilter | None = None,
    ) -> list[ScoredRecord]:
        await self.connect()
        check_dimension(query_vector, self._dimension, self.get_provider_name())
        if top_k <= 0:
            return []

        candidates = [
            record for record in self._records.values() if evaluate(filter, record.metadata)
        ]
        scored = [
            ScoredRecord(
                id=record.id,
                score=cosine_similarity(query_vector, record.vector),
                metadata=record.metadata,
            )
            for record in candidates
        ]
        # sorted() is stable: equal scores keep insertion order.
        ranked = sorted(scored, key=lambda hit: hit.score, reverse=True)
        return ranked[:top_k]

    async def get(self, record_id: str) -> VectorRecord | None:
        return self._records.get(record_id)

    async def count_by_document(self, document_id: str) -> int:
        return sum(
            1 for record in self._records.values() if record.metadata.document_id == document_id
        )

    async def count(self) -> int:
        return len(self._records)

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "memory"
