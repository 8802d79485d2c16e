"""Document-level models for the ingestion pipeline.

A :class:`DocumentMetadata` describes one logical source document before it
is chunked.  Chunking produces ephemeral :class:`Chunk` objects; ingestion
reports back an :class:`IngestionResult`.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class DocumentType(str, Enum):
    """Kinds of compliance source material."""

    STANDARD = "standard"
    GUIDANCE = "guidance"
    EXPOSURE_DRAFT = "exposure-draft"
    WEBINAR = "webinar"
    CASE_STUDY = "case-study"
    AUDIT_GUIDE = "audit-guide"
    OTHER = "other"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class DocumentMetadata(BaseModel):
    """Describes a logical source document prior to chunking.

    ``document_id`` is stable and unique per logical document; ingesting
    the same id again replaces the stored chunks.
    """

    model_config = ConfigDict(frozen=True, use_enum_values=True, validate_default=True)

    document_id: str = Field(default="", description="Stable document identifier.")
    title: str = Field(default="", description="Human-readable document title.")
    source: str = Field(default="", description="Publisher or origin, e.g. 'IFRS Foundation'.")
    url: str | None = None
    source_url: str | None = None
    document_type: DocumentType = DocumentType.OTHER
    version: str | None = None
    publish_date: datetime | None = None
    language: str = "en"
    priority: Priority | None = None
    scope: str | None = Field(default=None, description="Topic tag: s1, s2, general, accounting.")
    trusted_source: bool | None = None
    section: str | None = None
    ingestion_date: datetime | None = None
    last_modified: datetime | None = None
    checksum: str | None = None


class Chunk(BaseModel):
    """A bounded slice of a document's text; the unit of embedding."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="'{document_id}-chunk-{chunk_index}'.")
    document_id: str
    text: str
    chunk_index: int = Field(ge=0)
    start: int = Field(ge=0, description="Character offset where the chunk begins.")
    end: int = Field(ge=0, description="Character offset one past the chunk's end.")


class EmbeddingResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    embedding: list[float]
    model: str
    dimension: int


class IngestionOptions(BaseModel):
    """Per-call ingestion knobs; ``None`` sizes fall back to settings."""

    model_config = ConfigDict(frozen=True)

    chunk_size: int | None = Field(default=None, gt=0)
    chunk_overlap: int | None = Field(default=None, ge=0)
    skip_existing: bool = False


class ValidationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    valid: bool
    errors: list[str] = Field(default_factory=list)


class IngestionResult(BaseModel):
    """Outcome of ingesting one document."""

    model_config = ConfigDict(frozen=True)

    success: bool
    document_id: str
    chunks_created: int = Field(default=0, ge=0)
    vectors_stored: int = Field(default=0, ge=0)
    processing_time_ms: float = Field(default=0.0, ge=0.0)
    errors: list[str] = Field(default_factory=list)
    message: str | None = None


class IngestionStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_vectors: int = 0
    vector_store: str
    embedding_provider: str
    embedding_dimension: int


class FetchedContent(BaseModel):
    """Normalised text pulled from a file, URL or feed item."""

    model_config = ConfigDict(frozen=True)

    text: str
    title: str = ""
    content_type: str = "text/plain"
    url: str | None = None
    size_bytes: int = 0
