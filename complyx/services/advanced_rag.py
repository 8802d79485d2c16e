"""Cross-references, temporal relevance and source reliability.

Helpers layered over retrieval results.  None of them call the LLM.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone

import structlog

from complyx.models.rag import CrossReference, RetrievedDocument, SearchQuery, TemporalContext
from complyx.services.search_service import SearchService
from complyx.utils.errors import ComplyxError

logger = structlog.get_logger(logger_name=__name__)

OFFICIAL_SOURCES = frozenset({"IFRS Foundation", "ISSB", "IASB", "IFRS", "IAS"})
OFFICIAL_RELIABILITY = 0.95
DEFAULT_RELIABILITY = 0.75

OUTDATED_AFTER_DAYS = 730
STALE_AFTER_DAYS = 365


def source_reliability(documents: Sequence[RetrievedDocument]) -> dict[str, float]:
    """Reliability score per source.

    Official standard setters score 0.95, everything else 0.75.  A source
    cited by more than three of *documents* gains 0.05 for each citation
    past the third, capped at 1.0.
    """
    citations: dict[str, int] = {}
    scores: dict[str, float] = {}
    for doc in documents:
        source = doc.metadata.source or "unknown"
        citations[source] = citations.get(source, 0) + 1
        if source not in scores:
            official = source in OFFICIAL_SOURCES
            scores[source] = OFFICIAL_RELIABILITY if official else DEFAULT_RELIABILITY
        elif citations[source] > 3:
            scores[source] = min(1.0, scores[source] + 0.05)
    return scores


def add_temporal_context(
    documents: Sequence[RetrievedDocument],
    as_of: datetime | None = None,
) -> list[TemporalContext]:
    """Age each document against *as_of* (default: now, UTC).

    Documents older than two years are marked not relevant; older than one
    year they stay relevant but carry a warning.  Undated documents are
    assumed current.
    """
    now = as_of or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    contexts: list[TemporalContext] = []
    for doc in documents:
        published = doc.metadata.publish_date
        if published is None:
            contexts.append(TemporalContext(document_id=doc.metadata.document_id))
            continue
        if published.tzinfo is None:
            published = published.replace(tzinfo=timezone.utc)

        days_old = abs((now - published).days)
        relevant = True
        warning = None
        if days_old > OUTDATED_AFTER_DAYS:
            relevant = False
            warning = "Document may be outdated (more than 2 years old)"
        elif days_old > STALE_AFTER_DAYS:
            warning = "Document is older than 1 year; verify current requirements"

        contexts.append(
            TemporalContext(
                document_id=doc.metadata.document_id,
                publish_date=published,
                days_old=days_old,
                is_temporally_relevant=relevant,
                warning=warning,
            )
        )
    return contexts


def filter_by_temporal_relevance(
    documents: Sequence[RetrievedDocument],
    contexts: Sequence[TemporalContext] | None = None,
) -> list[RetrievedDocument]:
    """Drop documents whose temporal context marks them not relevant."""
    if contexts is None:
        contexts = add_temporal_context(documents)
    return [
        doc
        for doc, context in zip(documents, contexts, strict=True)
        if context.is_temporally_relevant
    ]


def classify_relationship(title: str, text: str) -> str:
    title = title.lower()
    text = text.lower()
    if "amendment" in title or "amends" in title:
        return "amends"
    if "supersedes" in title or "replaces" in title:
        return "supersedes"
    if "follows from" in text or "based on" in text:
        return "follows"
    if "cited in" in text or "references" in text:
        return "cites"
    return "related"


class AdvancedRAG:
    """Finds documents related to a given document through the search service."""

    def __init__(self, search_service: SearchService) -> None:
        self._search_service = search_service

    async def find_cross_references(
        self, document_id: str, limit: int = 5
    ) -> list[CrossReference]:
        """Documents similar to *document_id*, strongest first.

        The document id itself is the search seed.  Chunks of the source
        document are excluded and each target document appears once.  Any
        retrieval failure yields an empty list.
        """
        try:
            response = await self._search_service.search(
                SearchQuery(query=document_id, top_k=limit * 2, min_score=0.0)
            )
        except ComplyxError as exc:
            logger.warning("cross_reference_search_failed", document_id=document_id, error=str(exc))
            return []

        references: dict[str, CrossReference] = {}
        for result in response.results:
            target = result.metadata.document_id
            if target == document_id or target in references:
                continue
            references[target] = CrossReference(
                source_document_id=document_id,
                target_document_id=target,
                relationship_type=classify_relationship(result.metadata.title or "", result.text),
                confidence=max(0.0, min(result.score, 1.0)),
                target_title=result.metadata.title or "",
            )

        ranked = sorted(references.values(), key=lambda ref: ref.confidence, reverse=True)
        return ranked[:limit]
