"""FastAPI routes for the knowledge pipeline.

Services are built once at startup (``main._build_all``) and stored on
``app.state``; each route pulls what it needs through an ``Annotated``
dependency.

Endpoint                         Method  Description
-------------------------------  ------  -------------------------------------
/api/v1/search                   POST    Semantic or hybrid search
/api/v1/search/faceted           POST    Hybrid search with facet counts
/api/v1/rag                      POST    Answer a question from context
/api/v1/rag/stream               POST    Same, streamed as NDJSON events
/api/v1/documents                POST    Ingest raw text
/api/v1/documents/url            POST    Fetch a URL and ingest it
/api/v1/documents/stats          GET     Vector count and providers
/api/v1/documents/{id}           PUT     Replace a document's text
/api/v1/documents/{id}           DELETE  Remove a document's chunks
/api/v1/documents/{id}/related   GET     Cross-references for a document
/api/v1/feeds                    GET     List registered feeds
/api/v1/feeds                    POST    Register a feed
/api/v1/feeds/stats              GET     Feed counts and active jobs
/api/v1/feeds/process            POST    Process every enabled feed now
/api/v1/feeds/{id}               GET     One feed
/api/v1/feeds/{id}               PATCH   Enable or disable a feed
/api/v1/feeds/{id}               DELETE  Unregister a feed
/api/v1/feeds/{id}/process       POST    Process one feed now
/api/v1/health                   GET     Health check
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from complyx import __version__
from complyx.api.schemas import (
    CrossReferencesResponse,
    DeleteDocumentResponse,
    DocumentIngestRequest,
    DocumentUpdateRequest,
    FacetedSearchRequest,
    FeedListResponse,
    FeedUpdateRequest,
    HealthResponse,
    RAGRequest,
    SearchRequest,
    UrlIngestRequest,
)
from complyx.models.documents import IngestionOptions, IngestionResult, IngestionStats
from complyx.models.feeds import FeedConfig, FeedStatistics, ScheduledFeed, ScrapingResult
from complyx.models.rag import (
    FacetedSearchResponse,
    RAGResponse,
    SearchQuery,
    SearchResponse,
    StreamEvent,
)
from complyx.services.advanced_rag import AdvancedRAG
from complyx.services.feeds.scheduler import FeedScheduler
from complyx.services.ingestion.ingestion_service import IngestionService
from complyx.services.rag_service import CancellationToken, RAGService
from complyx.services.search_service import SearchService
from complyx.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_search_service(request: Request) -> SearchService:
    return request.app.state.search_service


def _get_rag_service(request: Request) -> RAGService:
    return request.app.state.rag_service


def _get_advanced_rag(request: Request) -> AdvancedRAG:
    return request.app.state.advanced_rag


def _get_ingestion_service(request: Request) -> IngestionService:
    return request.app.state.ingestion_service


def _get_feed_scheduler(request: Request) -> FeedScheduler:
    return request.app.state.feed_scheduler


SearchDep = Annotated[SearchService, Depends(_get_search_service)]
RAGDep = Annotated[RAGService, Depends(_get_rag_service)]
AdvancedRAGDep = Annotated[AdvancedRAG, Depends(_get_advanced_rag)]
IngestionDep = Annotated[IngestionService, Depends(_get_ingestion_service)]
SchedulerDep = Annotated[FeedScheduler, Depends(_get_feed_scheduler)]


# ---------------------------------------------------------------------------
# Search and RAG
# ---------------------------------------------------------------------------


@router.post("/search", response_model=SearchResponse, summary="Search the knowledge base")
async def search(body: SearchRequest, search_service: SearchDep) -> SearchResponse:
    if body.mode == "hybrid":
        return await search_service.hybrid_search(
            body.query,
            top_k=body.top_k,
            semantic_weight=body.semantic_weight,
            keyword_weight=body.keyword_weight,
            filter=body.filter,
        )
    return await search_service.search(
        SearchQuery(
            query=body.query,
            top_k=body.top_k,
            min_score=body.min_score,
            filter=body.filter,
        )
    )


@router.post(
    "/search/faceted",
    response_model=FacetedSearchResponse,
    summary="Hybrid search with metadata facet counts",
)
async def faceted_search(
    body: FacetedSearchRequest, search_service: SearchDep
) -> FacetedSearchResponse:
    return await search_service.faceted_search(
        body.query,
        facets=body.facets,
        top_k=body.top_k,
        filter=body.filter,
        selected=body.selected,
    )


@router.post("/rag", response_model=RAGResponse, summary="Answer a question from the knowledge base")
async def rag(body: RAGRequest, rag_service: RAGDep) -> RAGResponse:
    return await rag_service.generate_response(
        body.query,
        history=body.history,
        top_k=body.top_k,
        min_score=body.min_score,
        filter=body.filter,
        exclude_outdated=body.exclude_outdated,
    )


@router.post("/rag/stream", summary="Stream an answer as newline-delimited JSON events")
async def rag_stream(body: RAGRequest, request: Request, rag_service: RAGDep) -> StreamingResponse:
    """Stream ``context``, ``content`` and ``done`` events, one JSON object per line.

    Retrieval runs before the response starts so retrieval errors still map
    to an HTTP error status.  A client disconnect cancels generation.
    """
    token = CancellationToken()
    events = rag_service.stream_response(
        body.query,
        history=body.history,
        cancel_token=token,
        top_k=body.top_k,
        min_score=body.min_score,
        filter=body.filter,
    )
    first = await anext(events)

    async def _ndjson() -> AsyncIterator[str]:
        event: StreamEvent | None = first
        try:
            while event is not None:
                yield event.model_dump_json() + "\n"
                if await request.is_disconnected():
                    token.cancel()
                event = await anext(events, None)
        finally:
            await events.aclose()

    return StreamingResponse(_ndjson(), media_type="application/x-ndjson")


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.post("/documents", response_model=IngestionResult, summary="Ingest a document")
async def ingest_document(body: DocumentIngestRequest, ingestion: IngestionDep) -> IngestionResult:
    options = IngestionOptions(
        chunk_size=body.chunk_size,
        chunk_overlap=body.chunk_overlap,
        skip_existing=body.skip_existing,
    )
    return await ingestion.ingest_document(body.text, body.metadata, options)


@router.post("/documents/url", response_model=IngestionResult, summary="Fetch and ingest a URL")
async def ingest_url(body: UrlIngestRequest, ingestion: IngestionDep) -> IngestionResult:
    return await ingestion.ingest_url(
        body.url, body.metadata, IngestionOptions(skip_existing=body.skip_existing)
    )


@router.get("/documents/stats", response_model=IngestionStats, summary="Knowledge base statistics")
async def document_stats(ingestion: IngestionDep) -> IngestionStats:
    return await ingestion.get_stats()


@router.put("/documents/{document_id}", response_model=IngestionResult, summary="Replace a document")
async def update_document(
    document_id: str, body: DocumentUpdateRequest, ingestion: IngestionDep
) -> IngestionResult:
    return await ingestion.update_document(document_id, body.text, body.metadata)


@router.delete(
    "/documents/{document_id}", response_model=DeleteDocumentResponse, summary="Delete a document"
)
async def delete_document(document_id: str, ingestion: IngestionDep) -> DeleteDocumentResponse:
    removed = await ingestion.delete_document(document_id)
    return DeleteDocumentResponse(document_id=document_id, vectors_deleted=removed)


@router.get(
    "/documents/{document_id}/related",
    response_model=CrossReferencesResponse,
    summary="Documents related to a document",
)
async def related_documents(
    document_id: str,
    advanced_rag: AdvancedRAGDep,
    limit: int = Query(default=5, gt=0, le=50),
) -> CrossReferencesResponse:
    references = await advanced_rag.find_cross_references(document_id, limit)
    return CrossReferencesResponse(document_id=document_id, cross_references=references)


# ---------------------------------------------------------------------------
# Feeds
# ---------------------------------------------------------------------------


@router.get("/feeds", response_model=FeedListResponse, summary="List feeds")
async def list_feeds(scheduler: SchedulerDep) -> FeedListResponse:
    feeds = await scheduler.get_feeds()
    return FeedListResponse(feeds=feeds, total=len(feeds))


@router.post("/feeds", response_model=ScheduledFeed, status_code=201, summary="Register a feed")
async def register_feed(body: FeedConfig, scheduler: SchedulerDep) -> ScheduledFeed:
    return await scheduler.register_feed(body)


@router.get("/feeds/stats", response_model=FeedStatistics, summary="Feed statistics")
async def feed_stats(scheduler: SchedulerDep) -> FeedStatistics:
    return await scheduler.get_statistics()


@router.post("/feeds/process", response_model=list[ScrapingResult], summary="Process all feeds")
async def process_all_feeds(scheduler: SchedulerDep) -> list[ScrapingResult]:
    return await scheduler.process_all_feeds()


@router.get("/feeds/{feed_id}", response_model=ScheduledFeed, summary="Get a feed")
async def get_feed(feed_id: str, scheduler: SchedulerDep) -> ScheduledFeed:
    return await scheduler.get_feed(feed_id)


@router.patch("/feeds/{feed_id}", response_model=ScheduledFeed, summary="Enable or disable a feed")
async def update_feed(
    feed_id: str, body: FeedUpdateRequest, scheduler: SchedulerDep
) -> ScheduledFeed:
    return await scheduler.set_feed_enabled(feed_id, body.enabled)


@router.delete("/feeds/{feed_id}", status_code=204, summary="Unregister a feed")
async def delete_feed(feed_id: str, scheduler: SchedulerDep) -> None:
    await scheduler.unregister_feed(feed_id)


@router.post(
    "/feeds/{feed_id}/process", response_model=ScrapingResult, summary="Process one feed now"
)
async def process_feed(feed_id: str, scheduler: SchedulerDep) -> ScrapingResult:
    return await scheduler.process_feed(feed_id)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health_check(request: Request) -> HealthResponse:
    """Report provider configuration and whether the vector store answers."""
    providers: dict[str, Any] = dict(getattr(request.app.state, "provider_registry", {}))

    vector_store = getattr(request.app.state, "vector_store", None)
    store_ok = False
    if vector_store is not None:
        try:
            providers["vectors"] = await vector_store.count()
            store_ok = True
        except Exception as exc:
            _logger.warning("health_vector_store_unavailable", error=str(exc))

    providers["vector_store_ok"] = store_ok
    scheduler = getattr(request.app.state, "feed_scheduler", None)
    if scheduler is not None:
        providers["feed_scheduler_running"] = scheduler.is_running

    if store_ok and providers.get("embedding", False):
        status = "healthy"
    elif store_ok:
        status = "degraded"
    else:
        status = "unhealthy"
    return HealthResponse(status=status, version=__version__, providers=providers)
