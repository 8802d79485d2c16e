"""Pydantic request/response schemas for the Complyx API.

Request schemas end with ``Request`` and response schemas with
``Response``.  Domain models (``SearchResponse``, ``RAGResponse``,
``ScheduledFeed`` ...) are returned directly where they already have the
right shape.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from complyx.models.documents import DocumentMetadata
from complyx.models.feeds import ScheduledFeed
from complyx.models.filters import MetadataFilter
from complyx.models.rag import ChatMessage, CrossReference


class SearchRequest(BaseModel):
    """Semantic or hybrid search over the knowledge base."""

    query: str = Field(..., min_length=1, max_length=2000)
    top_k: int | None = Field(default=None, gt=0, le=100)
    min_score: float | None = Field(default=None, ge=-1.0, le=1.0)
    filter: MetadataFilter | None = None
    mode: Literal["semantic", "hybrid"] = "semantic"
    semantic_weight: float = Field(default=0.7, ge=0.0)
    keyword_weight: float = Field(default=0.3, ge=0.0)


class FacetedSearchRequest(BaseModel):
    """Hybrid search returning value counts for the named metadata fields."""

    query: str = Field(..., min_length=1, max_length=2000)
    facets: list[str] = Field(
        default_factory=lambda: ["source", "document_type", "section"], max_length=15
    )
    top_k: int | None = Field(default=None, gt=0, le=100)
    filter: MetadataFilter | None = None
    selected: dict[str, list[str]] | None = Field(
        default=None,
        description="Facet values to narrow results to, e.g. {\"source\": [\"IFRS Foundation\"]}.",
    )


class RAGRequest(BaseModel):
    """Question answered from retrieved context."""

    query: str = Field(..., min_length=1, max_length=2000)
    history: list[ChatMessage] = Field(default_factory=list)
    top_k: int = Field(default=5, gt=0, le=50)
    min_score: float = Field(default=0.5, ge=-1.0, le=1.0)
    filter: MetadataFilter | None = None
    exclude_outdated: bool = Field(
        default=False, description="Drop documents published more than two years ago."
    )


class DocumentIngestRequest(BaseModel):
    text: str = Field(..., min_length=1)
    metadata: DocumentMetadata
    chunk_size: int | None = Field(default=None, gt=0)
    chunk_overlap: int | None = Field(default=None, ge=0)
    skip_existing: bool = False


class DocumentUpdateRequest(BaseModel):
    text: str = Field(..., min_length=1)
    metadata: DocumentMetadata | None = None


class UrlIngestRequest(BaseModel):
    url: str = Field(..., min_length=1)
    metadata: DocumentMetadata | None = Field(
        default=None, description="Overrides for fields otherwise taken from the page."
    )
    skip_existing: bool = False


class DeleteDocumentResponse(BaseModel):
    success: bool = True
    document_id: str
    vectors_deleted: int


class CrossReferencesResponse(BaseModel):
    document_id: str
    cross_references: list[CrossReference] = Field(default_factory=list)


class FeedUpdateRequest(BaseModel):
    enabled: bool


class FeedListResponse(BaseModel):
    feeds: list[ScheduledFeed] = Field(default_factory=list)
    total: int = 0


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    success: bool = False
    error: str
    detail: str | None = None
