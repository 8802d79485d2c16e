"""Orchestrator for the document ingestion pipeline.

Pipeline stages: **validate -> enrich -> chunk -> embed -> store**.

:class:`IngestionService` coordinates the embedding service, the vector
store and the content fetchers without any of them knowing about each
other.  All collaborators are injected via the constructor so tests can
substitute fakes.

Re-ingesting a ``document_id`` replaces its chunks.  The replacement is
delete-then-insert: old chunks are removed only after the new text has been
embedded, immediately before the new vectors are written.  A failure in
that window leaves the document with no chunks rather than a mix of stale
and fresh ones.
"""

from __future__ import annotations

import asyncio
import hashlib
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import urlparse

import structlog

from complyx.models.documents import (
    DocumentMetadata,
    DocumentType,
    IngestionOptions,
    IngestionResult,
    IngestionStats,
    ValidationResult,
)
from complyx.models.vectors import VectorMetadata, VectorRecord
from complyx.services.ingestion.metadata_enricher import enrich_metadata
from complyx.utils.errors import (
    ConfigurationError,
    NotFoundError,
    TransientIOError,
    ValidationError,
)

if TYPE_CHECKING:
    from complyx.interfaces.content_provider import IContentProvider
    from complyx.interfaces.vector_store_provider import IVectorStoreProvider
    from complyx.models.documents import Chunk
    from complyx.services.embedding_service import EmbeddingService

logger = structlog.get_logger(logger_name=__name__)


class IngestionService:
    """Validates, chunks, embeds and stores documents.

    Parameters
    ----------
    embedding_service:
        Chunks text and generates embeddings.
    vector_store:
        Destination for embedded chunks.
    url_fetcher:
        Optional content provider used by :meth:`ingest_url`.
    file_loader:
        Optional content provider used by :meth:`ingest_file`.
    knowledge_base_version:
        Version stamped on chunks whose document carries none.
    batch_delay:
        Seconds to pause between documents in :meth:`ingest_documents`.
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        vector_store: IVectorStoreProvider,
        url_fetcher: IContentProvider | None = None,
        file_loader: IContentProvider | None = None,
        knowledge_base_version: str = "v1.0.0",
        batch_delay: float = 0.1,
    ) -> None:
        self._embedding_service = embedding_service
        self._vector_store = vector_store
        self._url_fetcher = url_fetcher
        self._file_loader = file_loader
        self._knowledge_base_version = knowledge_base_version
        self._batch_delay = batch_delay

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def validate_metadata(metadata: DocumentMetadata) -> ValidationResult:
        """Check required fields, reporting every violation at once."""
        errors: list[str] = []
        if not metadata.document_id or not metadata.document_id.strip():
            errors.append("Document ID is required")
        if not metadata.title or not metadata.title.strip():
            errors.append("Document title is required")
        if not metadata.source or not metadata.source.strip():
            errors.append("Document source is required")
        return ValidationResult(valid=not errors, errors=errors)

    # ------------------------------------------------------------------
    # Single-document operations
    # ------------------------------------------------------------------

    async def ingest_document(
        self,
        text: str,
        metadata: DocumentMetadata,
        options: IngestionOptions | None = None,
    ) -> IngestionResult:
        """Ingest one document, replacing any chunks already stored for it.

        Raises
        ------
        ValidationError
            If the metadata is incomplete or the text is empty.
        ConfigurationError
            On invalid chunking sizes or a vector dimension mismatch.
        TransientIOError
            If the embedding provider or vector store fails.
        """
        options = options or IngestionOptions()
        start = time.monotonic()

        validation = self.validate_metadata(metadata)
        if not validation.valid:
            raise ValidationError(
                message=f"Invalid document metadata: {'; '.join(validation.errors)}",
                errors=validation.errors,
            )
        if not text or not text.strip():
            raise ValidationError(message=f"Document {metadata.document_id} has no text")

        document_id = metadata.document_id
        existing = await self._vector_store.count_by_document(document_id)
        if existing and options.skip_existing:
            logger.info("ingest_skipped_existing", document_id=document_id, chunks=existing)
            return IngestionResult(
                success=True,
                document_id=document_id,
                processing_time_ms=_elapsed_ms(start),
                message=f"Document {document_id} already exists. Skipped.",
            )

        enriched = enrich_metadata(metadata, text)
        chunks = self._embedding_service.chunk_document(
            document_id, text, options.chunk_size, options.chunk_overlap
        )
        vectors = await self._embedding_service.generate_embeddings(
            [chunk.text for chunk in chunks]
        )

        now = datetime.now(timezone.utc)
        records = [
            VectorRecord(
                id=chunk.id,
                vector=vector,
                metadata=self._vector_metadata(chunk, enriched, now),
            )
            for chunk, vector in zip(chunks, vectors, strict=True)
        ]

        if existing:
            removed = await self._vector_store.delete_by_document(document_id)
            logger.info("ingest_replaced_existing", document_id=document_id, removed=removed)

        stored = await self._vector_store.insert_batch(records)
        errors = []
        if stored != len(records):
            errors.append(f"Stored {stored} of {len(records)} vectors")

        result = IngestionResult(
            success=not errors,
            document_id=document_id,
            chunks_created=len(chunks),
            vectors_stored=stored,
            processing_time_ms=_elapsed_ms(start),
            errors=errors,
        )
        logger.info(
            "document_ingested",
            document_id=document_id,
            chunks=result.chunks_created,
            vectors=result.vectors_stored,
            replaced=bool(existing),
            elapsed_ms=result.processing_time_ms,
        )
        return result

    async def update_document(
        self,
        document_id: str,
        new_text: str,
        metadata: DocumentMetadata | None = None,
    ) -> IngestionResult:
        """Replace every chunk of *document_id* with chunks of *new_text*.

        When *metadata* is omitted the document is re-ingested with the id
        as its title, source ``"unknown"`` and type ``other``.
        """
        if metadata is None:
            metadata = DocumentMetadata(
                document_id=document_id,
                title=document_id,
                source="unknown",
                document_type=DocumentType.OTHER,
            )
        elif metadata.document_id != document_id:
            metadata = metadata.model_copy(update={"document_id": document_id})

        return await self.ingest_document(
            new_text, metadata, IngestionOptions(skip_existing=False)
        )

    async def delete_document(self, document_id: str) -> int:
        removed = await self._vector_store.delete_by_document(document_id)
        if removed == 0:
            raise NotFoundError(message=f"Document {document_id} not found")
        logger.info("document_deleted", document_id=document_id, removed=removed)
        return removed

    async def ingest_url(
        self,
        url: str,
        metadata: DocumentMetadata | None = None,
        options: IngestionOptions | None = None,
    ) -> IngestionResult:
        """Fetch *url*, extract its text and ingest it.

        Missing metadata is filled from the page: the id defaults to a hash
        of the URL (so re-ingesting a URL updates it), the title to the page
        title and the source to the host name.
        """
        if self._url_fetcher is None:
            raise ConfigurationError(message="IngestionService was built without a URL fetcher")

        content = await self._url_fetcher.fetch(url)
        base = metadata or DocumentMetadata()
        filled = base.model_copy(
            update={
                "document_id": base.document_id or f"url-{_short_hash(url)}",
                "title": base.title or content.title or url,
                "source": base.source or urlparse(url).hostname or "web",
                "url": base.url or url,
            }
        )
        return await self.ingest_document(content.text, filled, options)

    async def ingest_file(
        self,
        path: str | Path,
        metadata: DocumentMetadata | None = None,
        options: IngestionOptions | None = None,
    ) -> IngestionResult:
        """Load a local file and ingest it."""
        if self._file_loader is None:
            raise ConfigurationError(message="IngestionService was built without a file loader")

        resolved = Path(path).resolve()
        content = await self._file_loader.fetch(str(resolved))
        base = metadata or DocumentMetadata()
        filled = base.model_copy(
            update={
                "document_id": base.document_id or f"file-{_short_hash(str(resolved))}",
                "title": base.title or content.title or resolved.stem,
                "source": base.source or "local-file",
            }
        )
        return await self.ingest_document(content.text, filled, options)

    # ------------------------------------------------------------------
    # Batch operations
    # ------------------------------------------------------------------

    async def ingest_documents(
        self,
        documents: list[tuple[str, DocumentMetadata]],
        options: IngestionOptions | None = None,
    ) -> list[IngestionResult]:
        """Ingest several documents sequentially, isolating failures.

        A document that fails validation or hits a provider error yields a
        failed :class:`IngestionResult`; the remaining documents still run.
        Configuration errors are fatal and propagate.
        """
        results: list[IngestionResult] = []
        for position, (text, metadata) in enumerate(documents):
            start = time.monotonic()
            try:
                result = await self.ingest_document(text, metadata, options)
            except (ValidationError, NotFoundError, TransientIOError) as exc:
                logger.warning(
                    "batch_document_failed",
                    document_id=metadata.document_id,
                    error=str(exc),
                )
                errors = exc.errors if isinstance(exc, ValidationError) else [str(exc)]
                result = IngestionResult(
                    success=False,
                    document_id=metadata.document_id,
                    processing_time_ms=_elapsed_ms(start),
                    errors=errors,
                )
            results.append(result)

            if self._batch_delay > 0 and position < len(documents) - 1:
                await asyncio.sleep(self._batch_delay)

        logger.info(
            "batch_ingested",
            documents=len(documents),
            succeeded=sum(1 for r in results if r.success),
            failed=sum(1 for r in results if not r.success),
        )
        return results

    async def get_stats(self) -> IngestionStats:
        return IngestionStats(
            total_vectors=await self._vector_store.count(),
            vector_store=self._vector_store.get_provider_name(),
            embedding_provider=self._embedding_service.provider_name,
            embedding_dimension=self._embedding_service.dimension,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _vector_metadata(
        self, chunk: Chunk, metadata: DocumentMetadata, now: datetime
    ) -> VectorMetadata:
        return VectorMetadata(
            text=chunk.text,
            document_id=chunk.document_id,
            chunk_index=chunk.chunk_index,
            section=metadata.section,
            title=metadata.title,
            source=metadata.source,
            url=metadata.url or metadata.source_url,
            version=metadata.version or self._knowledge_base_version,
            created_at=now,
            updated_at=now,
            document_type=metadata.document_type,
            priority=metadata.priority,
            scope=metadata.scope,
            trusted_source=metadata.trusted_source,
            publish_date=metadata.publish_date,
        )


def _elapsed_ms(start: float) -> float:
    return round((time.monotonic() - start) * 1000, 2)


def _short_hash(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:16]
