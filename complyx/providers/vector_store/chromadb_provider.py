"""ChromaDB vector store provider adapter.

Wraps a ``chromadb`` client (local ``PersistentClient`` or remote
``HttpClient``) to implement :class:`IVectorStoreProvider`.  The collection
uses cosine space, so similarity is ``1 - distance``.
"""

from __future__ import annotations

import asyncio
import os
from typing import Any

# Disable ChromaDB telemetry before importing chromadb.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import chromadb
import structlog

from complyx.interfaces.vector_store_provider import MAX_BATCH_SIZE, IVectorStoreProvider
from complyx.models.filters import And, Contains, Eq, In, MetadataFilter, Not, Or, Range, evaluate
from complyx.models.vectors import ScoredRecord, VectorRecord
from complyx.providers.vector_store.common import (
    DATETIME_FIELDS,
    check_batch_dimensions,
    check_dimension,
    flatten_metadata,
    to_epoch,
    unflatten_metadata,
)
from complyx.utils.errors import ConfigurationError, RAGError

logger = structlog.get_logger(logger_name=__name__)

_OVERFETCH_FACTOR = 4


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Keeps ChromaDB from loading its default ONNX model.

    Every vector is computed by the embedding provider and passed in
    explicitly, so this function must never be called.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "Complyx passes pre-computed embeddings; ChromaDB embedding should never run."
        )

    def name(self) -> str:
        return "noop_precomputed"


def translate_filter(node: MetadataFilter | None) -> tuple[dict[str, Any] | None, bool]:
    """Translate a filter tree to a ChromaDB ``where`` clause.

    Same contract as the Pinecone translator: returns ``(where, exact)``
    where ``where`` matches a superset of the true result.  ChromaDB allows
    one operator per field and needs at least two children in ``$and`` /
    ``$or``, so ranges become an ``$and`` of two clauses and single-child
    combinators are unwrapped.
    """
    if node is None:
        return None, True
    if isinstance(node, Eq):
        return {node.field: {"$eq": node.value}}, True
    if isinstance(node, In):
        return {node.field: {"$in": list(node.values)}}, True
    if isinstance(node, Range):
        clauses = []
        if node.gte is not None:
            clauses.append({node.field: {"$gte": _bound(node.field, node.gte)}})
        if node.lte is not None:
            clauses.append({node.field: {"$lte": _bound(node.field, node.lte)}})
        if not clauses:
            return None, False
        return _combine("$and", clauses), True
    if isinstance(node, (Contains, Not)):
        return None, False
    if isinstance(node, And):
        clauses = []
        exact = True
        for child in node.filters:
            clause, child_exact = translate_filter(child)
            exact = exact and child_exact
            if clause is not None:
                clauses.append(clause)
        if not clauses:
            return None, False
        return _combine("$and", clauses), exact
    if isinstance(node, Or):
        clauses = []
        exact = True
        for child in node.filters:
            clause, child_exact = translate_filter(child)
            if clause is None:
                return None, False
            exact = exact and child_exact
            clauses.append(clause)
        return _combine("$or", clauses), exact
    raise TypeError(f"Unsupported filter node: {type(node).__name__}")


def _combine(operator: str, clauses: list[dict[str, Any]]) -> dict[str, Any]:
    if len(clauses) == 1:
        return clauses[0]
    return {operator: clauses}


def _bound(field: str, value: Any) -> Any:
    if field in DATETIME_FIELDS and not isinstance(value, (int, float)):
        return to_epoch(value)
    return value


class ChromaDBVectorStore(IVectorStoreProvider):
    """Vector store backed by a ChromaDB collection.

    When *host* is set the store talks to a ChromaDB server over HTTP;
    otherwise it persists to *persist_directory*.
    """

    def __init__(
        self,
        dimension: int,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "complyx_knowledge",
        host: str = "",
        port: int = 8000,
        client: Any = None,
    ) -> None:
        self._dimension = dimension
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._host = host
        self._port = port
        self._client = client
        self._collection: Any = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        if self._collection is not None:
            return
        try:
            self._collection = await asyncio.to_thread(self._open_collection)
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB connect failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        await self._validate_embedding_dimensions()
        logger.info(
            "chromadb_connected",
            collection=self._collection_name,
            mode="http" if self._host else "persistent",
        )

    def _open_collection(self) -> Any:
        if self._client is None:
            settings = chromadb.config.Settings(anonymized_telemetry=False)
            if self._host:
                self._client = chromadb.HttpClient(
                    host=self._host, port=self._port, settings=settings
                )
            else:
                self._client = chromadb.PersistentClient(
                    path=self._persist_directory, settings=settings
                )
        return self._client.get_or_create_collection(
            name=self._collection_name,
            metadata={"hnsw:space": "cosine"},
            embedding_function=_NoopEmbeddingFunction(),
        )

    async def _validate_embedding_dimensions(self) -> None:
        """Compare a stored vector's length with the configured dimension."""
        try:
            sample = await asyncio.to_thread(self._collection.peek, limit=1)
        except Exception as exc:
            logger.warning("embedding_dimension_check_skipped", error=str(exc))
            return
        embeddings = sample.get("embeddings") if sample else None
        if embeddings is None or len(embeddings) == 0:
            return
        stored_dim = len(embeddings[0])
        if stored_dim != self._dimension:
            self._collection = None
            raise ConfigurationError(
                message=(
                    f"ChromaDB collection '{self._collection_name}' holds {stored_dim}-dim "
                    f"vectors but EMBEDDING_DIMENSION is {self._dimension}"
                ),
                provider_name=self.get_provider_name(),
            )

    async def disconnect(self) -> None:
        self._collection = None
        logger.info("chromadb_disconnected", collection=self._collection_name)

    def is_connected(self) -> bool:
        return self._collection is not None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert(self, record: VectorRecord) -> None:
        await self.insert_batch([record])

    async def insert_batch(self, records: list[VectorRecord]) -> int:
        if not records:
            return 0
        check_batch_dimensions(records, self._dimension, self.get_provider_name())
        await self.connect()

        stored = 0
        try:
            for start in range(0, len(records), MAX_BATCH_SIZE):
                batch = records[start : start + MAX_BATCH_SIZE]
                await asyncio.to_thread(
                    self._collection.upsert,
                    ids=[record.id for record in batch],
                    embeddings=[record.vector for record in batch],
                    documents=[record.metadata.text for record in batch],
                    metadatas=[self._to_chroma_metadata(record) for record in batch],
                )
                stored += len(batch)
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB upsert failed after {stored} records: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_insert_batch", count=stored)
        return stored

    async def delete(self, ids: list[str]) -> int:
        if not ids:
            return 0
        await self.connect()
        try:
            existing = await asyncio.to_thread(self._collection.get, ids=ids, include=[])
            present = existing["ids"] or []
            if present:
                await asyncio.to_thread(self._collection.delete, ids=present)
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB delete failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return len(present)

    async def delete_by_document(self, document_id: str) -> int:
        await self.connect()
        try:
            existing = await asyncio.to_thread(
                self._collection.get, where={"document_id": document_id}, include=[]
            )
            count = len(existing["ids"]) if existing["ids"] else 0
            if count > 0:
                await asyncio.to_thread(
                    self._collection.delete, where={"document_id": document_id}
                )
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB delete_by_document failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_delete_document", document_id=document_id, deleted=count)
        return count

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def search(
        self,
        query_vector: list[float],
        top_k: int = 10,
        filter: MetadataFilter | None = None,
    ) -> list[ScoredRecord]:
        check_dimension(query_vector, self._dimension, self.get_provider_name())
        if top_k <= 0:
            return []
        await self.connect()

        where, exact = translate_filter(filter)
        try:
            total = await asyncio.to_thread(self._collection.count)
            if total == 0:
                return []
            fetch_k = top_k if exact else top_k * _OVERFETCH_FACTOR
            kwargs: dict[str, Any] = {
                "query_embeddings": [query_vector],
                "n_results": min(fetch_k, total),
                "include": ["metadatas", "documents", "distances"],
            }
            if where is not None:
                kwargs["where"] = where
            results = await asyncio.to_thread(self._collection.query, **kwargs)
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not results["ids"] or not results["ids"][0]:
            return []

        ids = results["ids"][0]
        metadatas = results["metadatas"][0] if results["metadatas"] else [{}] * len(ids)
        documents = results["documents"][0] if results["documents"] else [""] * len(ids)
        distances = results["distances"][0] if results["distances"] else [1.0] * len(ids)

        hits: list[ScoredRecord] = []
        for record_id, meta, text, distance in zip(ids, metadatas, documents, distances, strict=True):
            metadata = unflatten_metadata({**(meta or {}), "text": text or ""})
            if evaluate(filter, metadata):
                hits.append(ScoredRecord(id=record_id, score=1.0 - float(distance), metadata=metadata))

        ranked = sorted(hits, key=lambda hit: hit.score, reverse=True)[:top_k]
        logger.info(
            "chromadb_query",
            raw_results=len(ids),
            exact_filter=exact,
            results_count=len(ranked),
        )
        return ranked

    async def get(self, record_id: str) -> VectorRecord | None:
        await self.connect()
        try:
            result = await asyncio.to_thread(
                self._collection.get,
                ids=[record_id],
                include=["embeddings", "metadatas", "documents"],
            )
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB get failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        if not result["ids"]:
            return None
        meta = result["metadatas"][0] if result["metadatas"] else {}
        text = result["documents"][0] if result["documents"] else ""
        return VectorRecord(
            id=record_id,
            vector=[float(value) for value in result["embeddings"][0]],
            metadata=unflatten_metadata({**(meta or {}), "text": text or ""}),
        )

    async def count_by_document(self, document_id: str) -> int:
        await self.connect()
        try:
            existing = await asyncio.to_thread(
                self._collection.get, where={"document_id": document_id}, include=[]
            )
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB get failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return len(existing["ids"]) if existing["ids"] else 0

    async def count(self) -> int:
        await self.connect()
        return int(await asyncio.to_thread(self._collection.count))

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "chromadb"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _to_chroma_metadata(record: VectorRecord) -> dict[str, str | int | float | bool]:
        """Flatten metadata; chunk text lives in the ``documents`` column."""
        flat = flatten_metadata(record.metadata)
        flat.pop("text", None)
        return flat
