"""Complyx domain models, re-exported for convenience.

    - documents.py -- document metadata, chunks, ingestion results
    - vectors.py   -- vector-store records and search hits
    - filters.py   -- metadata filter language
    - rag.py       -- search and RAG request/response models
    - feeds.py     -- feed registry and scraping reports
"""

from __future__ import annotations

from complyx.models.documents import (
    Chunk,
    DocumentMetadata,
    DocumentType,
    EmbeddingResult,
    FetchedContent,
    IngestionOptions,
    IngestionResult,
    IngestionStats,
    Priority,
    ValidationResult,
)
from complyx.models.feeds import (
    FeedConfig,
    FeedItem,
    FeedState,
    FeedStatistics,
    ParsedFeed,
    ScheduledFeed,
    ScrapingResult,
)
from complyx.models.filters import (
    And,
    Contains,
    Eq,
    In,
    MetadataFilter,
    Not,
    Or,
    Range,
    evaluate,
    parse_filter,
)
from complyx.models.rag import (
    ChatMessage,
    CrossReference,
    LLMCompletion,
    RAGContext,
    RAGResponse,
    RetrievedDocument,
    SearchQuery,
    SearchResponse,
    SearchResult,
    SourceRank,
    StreamEvent,
    TemporalContext,
)
from complyx.models.vectors import ScoredRecord, VectorMetadata, VectorRecord

__all__ = [
    "And",
    "ChatMessage",
    "Chunk",
    "Contains",
    "CrossReference",
    "DocumentMetadata",
    "DocumentType",
    "EmbeddingResult",
    "Eq",
    "FeedConfig",
    "FeedItem",
    "FeedState",
    "FeedStatistics",
    "FetchedContent",
    "In",
    "IngestionOptions",
    "IngestionResult",
    "IngestionStats",
    "LLMCompletion",
    "MetadataFilter",
    "Not",
    "Or",
    "ParsedFeed",
    "Priority",
    "RAGContext",
    "RAGResponse",
    "Range",
    "RetrievedDocument",
    "ScheduledFeed",
    "ScoredRecord",
    "ScrapingResult",
    "SearchQuery",
    "SearchResponse",
    "SearchResult",
    "SourceRank",
    "StreamEvent",
    "TemporalContext",
    "ValidationResult",
    "VectorMetadata",
    "VectorRecord",
    "evaluate",
    "parse_filter",
]
