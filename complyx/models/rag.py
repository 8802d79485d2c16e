"""Search and retrieval-augmented generation models.

All models are frozen: a search or RAG call builds them once and hands them
back to the caller.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from complyx.models.filters import MetadataFilter
from complyx.models.vectors import VectorMetadata


class SearchQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    query: str = Field(min_length=1)
    top_k: int | None = Field(default=None, gt=0)
    min_score: float | None = Field(default=None, ge=-1.0, le=1.0)
    filter: MetadataFilter | None = None


class SearchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    score: float
    text: str
    metadata: VectorMetadata


class SearchResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    results: list[SearchResult] = Field(default_factory=list)
    total_results: int = 0
    processing_time_ms: float = 0.0


class FacetValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    count: int = Field(ge=0)


class Facet(BaseModel):
    """Value counts for one metadata field, most frequent first."""

    model_config = ConfigDict(frozen=True)

    field: str
    values: list[FacetValue] = Field(default_factory=list)


class FacetedSearchResponse(BaseModel):
    """Hybrid results plus facet counts over the wider candidate pool.

    ``total_results`` counts pool matches after any facet selection, which
    can exceed ``len(results)``.
    """

    model_config = ConfigDict(frozen=True)

    query: str
    results: list[SearchResult] = Field(default_factory=list)
    facets: list[Facet] = Field(default_factory=list)
    total_results: int = 0
    processing_time_ms: float = 0.0


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: str


class RetrievedDocument(BaseModel):
    """A search result ranked for prompt assembly."""

    model_config = ConfigDict(frozen=True)

    id: str
    score: float
    adjusted_score: float
    rank: int = Field(ge=1)
    text: str
    metadata: VectorMetadata


class SourceRank(BaseModel):
    """Retrieved documents grouped by their ``source``."""

    model_config = ConfigDict(frozen=True)

    source: str
    document_count: int
    average_score: float
    documents: list[str] = Field(default_factory=list)


class RAGContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    context_text: str = ""
    relevant_documents: list[RetrievedDocument] = Field(default_factory=list)
    source_ranking: list[SourceRank] = Field(default_factory=list)


class RAGResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    response: str
    context: RAGContext
    citations: list[str] = Field(default_factory=list)
    model: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class StreamEvent(BaseModel):
    """One element of a streamed RAG answer.

    ``type`` is ``"context"`` for the leading retrieval event, ``"content"``
    for each generated token chunk, and ``"done"`` for the terminal event.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["context", "content", "done"]
    content: str = ""
    done: bool = False
    context: RAGContext | None = None
    citations: list[str] = Field(default_factory=list)
    cancelled: bool = False


class LLMCompletion(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: str
    model: str


# ---------------------------------------------------------------------------
# Advanced retrieval features
# ---------------------------------------------------------------------------


class CrossReference(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_document_id: str
    target_document_id: str
    relationship_type: Literal["amends", "supersedes", "follows", "cites", "related"]
    confidence: float = Field(ge=0.0, le=1.0)
    target_title: str = ""


class TemporalContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    document_id: str
    publish_date: datetime | None = None
    days_old: int | None = None
    is_temporally_relevant: bool = True
    warning: str | None = None
