"""Pinecone vector store provider adapter.

Wraps the synchronous ``pinecone`` SDK to implement
:class:`IVectorStoreProvider`.  SDK calls run in a worker thread via
``asyncio.to_thread`` so they never block the event loop.

On first :meth:`connect` the serverless index is created if it does not
exist, and the adapter polls ``describe_index`` until the index reports
ready before accepting writes.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

import structlog
from pinecone import Pinecone, ServerlessSpec

from complyx.interfaces.vector_store_provider import MAX_BATCH_SIZE, IVectorStoreProvider
from complyx.models.filters import And, Contains, Eq, In, MetadataFilter, Not, Or, Range, evaluate
from complyx.models.vectors import ScoredRecord, VectorRecord
from complyx.providers.vector_store.common import (
    DATETIME_FIELDS,
    check_batch_dimensions,
    check_dimension,
    chunk_id_prefix,
    flatten_metadata,
    to_epoch,
    unflatten_metadata,
)
from complyx.utils.errors import ConfigurationError, RAGError

logger = structlog.get_logger(logger_name=__name__)

# Pinecone's hard ceiling on query top_k.
_MAX_TOP_K = 10_000
# Over-fetch multiplier used when part of a filter cannot run server side.
_OVERFETCH_FACTOR = 4
_READY_POLL_INTERVAL = 1.0


def translate_filter(node: MetadataFilter | None) -> tuple[dict[str, Any] | None, bool]:
    """Translate a filter tree to Pinecone's metadata filter syntax.

    Returns ``(pinecone_filter, exact)``.  Predicates Pinecone cannot
    express (substring ``Contains`` and negation) are dropped from ``And``
    nodes and make an enclosing ``Or`` untranslatable, so the server filter
    always matches a superset of the true result and ``exact`` is
    ``False``.  Callers re-check every hit with
    :func:`~complyx.models.filters.evaluate`.
    """
    if node is None:
        return None, True
    if isinstance(node, Eq):
        return {node.field: {"$eq": node.value}}, True
    if isinstance(node, In):
        return {node.field: {"$in": list(node.values)}}, True
    if isinstance(node, Range):
        bounds: dict[str, Any] = {}
        if node.gte is not None:
            bounds["$gte"] = _bound(node.field, node.gte)
        if node.lte is not None:
            bounds["$lte"] = _bound(node.field, node.lte)
        if not bounds:
            return None, False
        return {node.field: bounds}, True
    if isinstance(node, (Contains, Not)):
        return None, False
    if isinstance(node, And):
        clauses: list[dict[str, Any]] = []
        exact = True
        for child in node.filters:
            clause, child_exact = translate_filter(child)
            exact = exact and child_exact
            if clause is not None:
                clauses.append(clause)
        if not clauses:
            return None, False
        if len(clauses) == 1:
            return clauses[0], exact
        return {"$and": clauses}, exact
    if isinstance(node, Or):
        clauses = []
        exact = True
        for child in node.filters:
            clause, child_exact = translate_filter(child)
            if clause is None:
                return None, False
            exact = exact and child_exact
            clauses.append(clause)
        if len(clauses) == 1:
            return clauses[0], exact
        return {"$or": clauses}, exact
    raise TypeError(f"Unsupported filter node: {type(node).__name__}")


def _bound(field: str, value: Any) -> Any:
    if field in DATETIME_FIELDS and not isinstance(value, (int, float)):
        return to_epoch(value)
    return value


class PineconeVectorStore(IVectorStoreProvider):
    """Vector store backed by a Pinecone serverless index.

    Parameters
    ----------
    api_key:
        Pinecone API key.  Required unless *client* is supplied.
    index_name:
        Name of the index; created on first connect if absent.
    dimension:
        Vector dimension, checked against an existing index.
    cloud / region:
        Serverless placement used when creating the index.
    namespace:
        Optional namespace for all reads and writes.
    ready_timeout:
        Seconds to wait for a new index to become ready.
    client:
        Pre-built :class:`pinecone.Pinecone` client (used by tests).
    """

    def __init__(
        self,
        api_key: str,
        index_name: str = "complyx-knowledge",
        dimension: int = 768,
        cloud: str = "aws",
        region: str = "us-east-1",
        namespace: str = "",
        ready_timeout: float = 120.0,
        client: Pinecone | None = None,
    ) -> None:
        if client is None and not api_key:
            raise ConfigurationError(
                message="PINECONE_API_KEY is required when VECTOR_DB_TYPE=pinecone",
                provider_name=self.get_provider_name(),
            )
        self._client = client or Pinecone(api_key=api_key)
        self._index_name = index_name
        self._dimension = dimension
        self._cloud = cloud
        self._region = region
        self._namespace = namespace
        self._ready_timeout = ready_timeout
        self._index: Any = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        if self._index is not None:
            return
        try:
            existing = await asyncio.to_thread(lambda: self._client.list_indexes().names())
            if self._index_name not in existing:
                logger.info(
                    "pinecone_create_index",
                    index=self._index_name,
                    dimension=self._dimension,
                    cloud=self._cloud,
                    region=self._region,
                )
                await asyncio.to_thread(
                    self._client.create_index,
                    name=self._index_name,
                    dimension=self._dimension,
                    metric="cosine",
                    spec=ServerlessSpec(cloud=self._cloud, region=self._region),
                )
            description = await self._wait_until_ready()
            stored_dim = getattr(description, "dimension", None)
            if stored_dim is not None and int(stored_dim) != self._dimension:
                raise ConfigurationError(
                    message=(
                        f"Pinecone index '{self._index_name}' has dimension {stored_dim} "
                        f"but EMBEDDING_DIMENSION is {self._dimension}"
                    ),
                    provider_name=self.get_provider_name(),
                )
            self._index = self._client.Index(self._index_name)
        except (ConfigurationError, RAGError):
            raise
        except Exception as exc:
            raise RAGError(
                message=f"Pinecone connect failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("pinecone_connected", index=self._index_name, namespace=self._namespace)

    async def _wait_until_ready(self) -> Any:
        deadline = time.monotonic() + self._ready_timeout
        while True:
            description = await asyncio.to_thread(self._client.describe_index, self._index_name)
            if description.status["ready"]:
                return description
            if time.monotonic() >= deadline:
                raise ConfigurationError(
                    message=(
                        f"Pinecone index '{self._index_name}' not ready after "
                        f"{self._ready_timeout:.0f}s"
                    ),
                    provider_name=self.get_provider_name(),
                )
            logger.debug("pinecone_index_not_ready", index=self._index_name)
            await asyncio.sleep(_READY_POLL_INTERVAL)

    async def disconnect(self) -> None:
        self._index = None
        logger.info("pinecone_disconnected", index=self._index_name)

    def is_connected(self) -> bool:
        return self._index is not None

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
                payload = [
                    {
                        "id": record.id,
                        "values": record.vector,
                        "metadata": flatten_metadata(record.metadata),
                    }
                    for record in batch
                ]
                await asyncio.to_thread(
                    self._index.upsert, vectors=payload, namespace=self._namespace
                )
                stored += len(batch)
        except Exception as exc:
            raise RAGError(
                message=f"Pinecone upsert failed after {stored} records: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "pinecone_insert_batch",
            count=stored,
            batches=(len(records) + MAX_BATCH_SIZE - 1) // MAX_BATCH_SIZE,
        )
        return stored

    async def delete(self, ids: list[str]) -> int:
        if not ids:
            return 0
        await self.connect()
        removed = 0
        try:
            for start in range(0, len(ids), MAX_BATCH_SIZE):
                batch = ids[start : start + MAX_BATCH_SIZE]
                fetched = await asyncio.to_thread(
                    self._index.fetch, ids=batch, namespace=self._namespace
                )
                present = list(fetched.vectors.keys())
                if present:
                    await asyncio.to_thread(
                        self._index.delete, ids=present, namespace=self._namespace
                    )
                removed += len(present)
        except Exception as exc:
            raise RAGError(
                message=f"Pinecone delete failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return removed

    async def delete_by_document(self, document_id: str) -> int:
        ids = await self._list_document_ids(document_id)
        if not ids:
            return 0
        try:
            for start in range(0, len(ids), MAX_BATCH_SIZE):
                await asyncio.to_thread(
                    self._index.delete,
                    ids=ids[start : start + MAX_BATCH_SIZE],
                    namespace=self._namespace,
                )
        except Exception as exc:
            raise RAGError(
                message=f"Pinecone delete_by_document failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("pinecone_delete_document", document_id=document_id, deleted=len(ids))
        return len(ids)

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

        server_filter, exact = translate_filter(filter)
        fetch_k = top_k if exact else min(max(top_k * _OVERFETCH_FACTOR, 100), _MAX_TOP_K)

        kwargs: dict[str, Any] = {
            "vector": query_vector,
            "top_k": fetch_k,
            "include_metadata": True,
            "namespace": self._namespace,
        }
        if server_filter is not None:
            kwargs["filter"] = server_filter

        try:
            response = await asyncio.to_thread(self._index.query, **kwargs)
        except Exception as exc:
            raise RAGError(
                message=f"Pinecone query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        hits = [
            ScoredRecord(
                id=match.id,
                score=float(match.score),
                metadata=unflatten_metadata(match.metadata),
            )
            for match in response.matches or []
        ]
        hits = [hit for hit in hits if evaluate(filter, hit.metadata)]
        ranked = sorted(hits, key=lambda hit: hit.score, reverse=True)[:top_k]

        logger.info(
            "pinecone_query",
            requested=top_k,
            fetched=fetch_k,
            exact_filter=exact,
            results_count=len(ranked),
        )
        return ranked

    async def get(self, record_id: str) -> VectorRecord | None:
        await self.connect()
        try:
            fetched = await asyncio.to_thread(
                self._index.fetch, ids=[record_id], namespace=self._namespace
            )
        except Exception as exc:
            raise RAGError(
                message=f"Pinecone fetch failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        vector = fetched.vectors.get(record_id)
        if vector is None:
            return None
        return VectorRecord(
            id=record_id,
            vector=list(vector.values),
            metadata=unflatten_metadata(vector.metadata),
        )

    async def count_by_document(self, document_id: str) -> int:
        return len(await self._list_document_ids(document_id))

    async def count(self) -> int:
        await self.connect()
        try:
            stats = await asyncio.to_thread(self._index.describe_index_stats)
        except Exception as exc:
            raise RAGError(
                message=f"Pinecone describe_index_stats failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        if self._namespace:
            summary = (stats.namespaces or {}).get(self._namespace)
            return int(summary.vector_count) if summary else 0
        return int(stats.total_vector_count or 0)

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "pinecone"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _list_document_ids(self, document_id: str) -> list[str]:
        """List chunk ids for a document using the id-prefix listing API."""
        await self.connect()
        prefix = chunk_id_prefix(document_id)

        def _collect() -> list[str]:
            ids: list[str] = []
            for page in self._index.list(prefix=prefix, namespace=self._namespace):
                ids.extend(page)
            return ids

        try:
            return await asyncio.to_thread(_collect)
        except Exception as exc:
            raise RAGError(
                message=f"Pinecone list failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
