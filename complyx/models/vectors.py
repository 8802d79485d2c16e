"""Vector-store record models.

A :class:`VectorRecord` is the unit the vector store persists: one embedded
chunk plus a fixed metadata schema.  Search hits come back as
:class:`ScoredRecord`.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class VectorMetadata(BaseModel):
    """Fixed metadata schema stored alongside every vector."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="The chunk's textual content.")
    document_id: str = Field(description="Identifier of the parent document.")
    chunk_index: int = Field(default=0, ge=0, description="Position of the chunk in its document.")
    section: str | None = None
    title: str | None = None
    source: str | None = None
    url: str | None = None
    version: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    # Carried from DocumentMetadata so retrieval can rank and filter on them.
    document_type: str | None = None
    priority: str | None = None
    scope: str | None = None
    trusted_source: bool | None = None
    publish_date: datetime | None = None


class VectorRecord(BaseModel):
    """An embedded chunk ready for storage."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Unique record id.")
    vector: list[float] = Field(description="Embedding vector.")
    metadata: VectorMetadata


class ScoredRecord(BaseModel):
    """A vector-store search hit."""

    model_config = ConfigDict(frozen=True)

    id: str
    score: float = Field(description="Cosine similarity to the query vector.")
    metadata: VectorMetadata
