"""Semantic search over the vector store.

Embeds the query once, asks the store for the ``top_k`` nearest chunks
(metadata filter applied in the store), then drops anything under
``min_score``.  The score cut happens here rather than in the store because
the store filter is metadata-only.

Hybrid search blends the semantic score with a keyword score computed over
the same candidate pool and applies small title/section/phrase boosts.
Faceted search runs hybrid search over a wider pool and counts metadata
values across it.
"""

from __future__ import annotations

import re
import time
from datetime import datetime

import structlog

from complyx.interfaces.vector_store_provider import IVectorStoreProvider
from complyx.models.filters import FILTERABLE_FIELDS, And, Eq, MetadataFilter
from complyx.models.rag import (
    Facet,
    FacetedSearchResponse,
    FacetValue,
    SearchQuery,
    SearchResponse,
    SearchResult,
)
from complyx.services.embedding_service import EmbeddingService
from complyx.utils.errors import ValidationError

logger = structlog.get_logger(logger_name=__name__)

_STOP_WORDS = frozenset(
    """
    the a an and or but in on at to for of with by from as is was are were been be
    have has had do does did will would should could may might must can this that
    these those what which who whom whose where when why how all each every both few
    more most other some such no nor not only own same so than too very just about
    into through during before after above below up down out off over under again
    further then once
    """.split()
)
_NON_WORD = re.compile(r"[^\w]")
_MAX_BOOST = 2.0


def extract_keywords(query: str) -> list[str]:
    """Lower-cased query words longer than two characters, minus stop words, deduplicated."""
    seen: dict[str, None] = {}
    for raw in query.lower().split():
        word = _NON_WORD.sub("", raw)
        if len(word) > 2 and word not in _STOP_WORDS:
            seen.setdefault(word, None)
    return list(seen)


def keyword_score(keywords: list[str], result: SearchResult) -> float:
    """Score in [0, 1]: 2 points per whole-word match, 1 per substring match."""
    if not keywords:
        return 0.0
    haystack = " ".join(
        part for part in (result.text, result.metadata.title, result.metadata.section) if part
    ).lower()
    points = 0
    for keyword in keywords:
        if re.search(rf"\b{re.escape(keyword)}\b", haystack):
            points += 2
        elif keyword in haystack:
            points += 1
    return points / (len(keywords) * 2)


def _ranking_boost(query: str, keywords: list[str], result: SearchResult, score: float) -> float:
    query_lower = query.lower()
    title = (result.metadata.title or "").lower()
    section = (result.metadata.section or "").lower()
    source = (result.metadata.source or "").lower()

    boost = 1.0
    boost += 0.3 * sum(1 for keyword in keywords if keyword in title)
    if query_lower in result.text.lower():
        boost += 0.4
    boost += 0.2 * sum(1 for keyword in keywords if keyword in section)
    if source and source in query_lower:
        boost += 0.15
    if score < 0.5:
        boost *= 0.8
    return min(boost, _MAX_BOOST)


def _facet_key(value: object) -> str | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def extract_facets(results: list[SearchResult], fields: list[str]) -> list[Facet]:
    """Count the non-empty values of each metadata field in *results*.

    Values are rendered as strings (datetimes as ISO 8601, booleans as
    ``true``/``false``) and ordered by count, then value.
    """
    facets: list[Facet] = []
    for field in fields:
        counts: dict[str, int] = {}
        for result in results:
            key = _facet_key(getattr(result.metadata, field))
            if key is not None:
                counts[key] = counts.get(key, 0) + 1
        ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        facets.append(
            Facet(
                field=field,
                values=[FacetValue(value=value, count=count) for value, count in ordered],
            )
        )
    return facets


def apply_facet_filters(
    results: list[SearchResult], selections: dict[str, list[str]]
) -> list[SearchResult]:
    """Keep results whose value matches one of the selected values for every field.

    Values within a field are OR-ed, fields are AND-ed.  A field with no
    selected values does not constrain anything.
    """
    active = {field: set(values) for field, values in selections.items() if values}
    return [
        result
        for result in results
        if all(
            _facet_key(getattr(result.metadata, field)) in values
            for field, values in active.items()
        )
    ]


def _check_facet_fields(fields: list[str]) -> None:
    unknown = [field for field in fields if field not in FILTERABLE_FIELDS]
    if unknown:
        raise ValidationError(
            message=f"Unknown facet field(s): {', '.join(unknown)}",
            errors=[
                f"Unknown metadata field '{field}'; expected one of {sorted(FILTERABLE_FIELDS)}"
                for field in unknown
            ],
        )


class SearchService:
    """Runs similarity queries against an :class:`IVectorStoreProvider`.

    Parameters
    ----------
    embedding_service:
        Embeds the query text.
    vector_store:
        The store to search.
    default_top_k / default_min_score:
        Used when a query leaves them unset.
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        vector_store: IVectorStoreProvider,
        default_top_k: int = 10,
        default_min_score: float = 0.5,
    ) -> None:
        self._embedding_service = embedding_service
        self._vector_store = vector_store
        self._default_top_k = default_top_k
        self._default_min_score = default_min_score

    async def search(self, query: SearchQuery) -> SearchResponse:
        """Return results at or above ``min_score``, highest score first."""
        start = time.monotonic()
        top_k = query.top_k or self._default_top_k
        min_score = self._default_min_score if query.min_score is None else query.min_score

        embedding = await self._embedding_service.generate_embedding(query.query)
        hits = await self._vector_store.search(embedding.embedding, top_k=top_k, filter=query.filter)

        results = [
            SearchResult(id=hit.id, score=hit.score, text=hit.metadata.text, metadata=hit.metadata)
            for hit in hits
            if hit.score >= min_score
        ]
        # Stable: equal scores keep the store's order.
        results.sort(key=lambda result: result.score, reverse=True)

        elapsed = round((time.monotonic() - start) * 1000, 2)
        logger.info(
            "semantic_search",
            query_length=len(query.query),
            top_k=top_k,
            min_score=min_score,
            candidates=len(hits),
            results_count=len(results),
            elapsed_ms=elapsed,
        )
        return SearchResponse(results=results, total_results=len(results), processing_time_ms=elapsed)

    async def search_by_document(
        self,
        query: str,
        document_id: str,
        top_k: int | None = None,
        min_score: float | None = None,
    ) -> SearchResponse:
        return await self.search(
            SearchQuery(
                query=query,
                top_k=top_k,
                min_score=min_score,
                filter=Eq(field="document_id", value=document_id),
            )
        )

    async def search_by_section(
        self,
        query: str,
        section: str,
        top_k: int | None = None,
        min_score: float | None = None,
        filter: MetadataFilter | None = None,
    ) -> SearchResponse:
        section_filter: MetadataFilter = Eq(field="section", value=section)
        if filter is not None:
            section_filter = And(filters=[section_filter, filter])
        return await self.search(
            SearchQuery(query=query, top_k=top_k, min_score=min_score, filter=section_filter)
        )

    async def hybrid_search(
        self,
        query: str,
        top_k: int | None = None,
        semantic_weight: float = 0.7,
        keyword_weight: float = 0.3,
        filter: MetadataFilter | None = None,
    ) -> SearchResponse:
        """Blend semantic similarity with keyword overlap.

        Candidates are the ``3 * top_k`` nearest chunks with no score
        cut-off.  Each gets ``semantic_weight * similarity + keyword_weight
        * keyword_score`` (weights normalised to sum to 1), multiplied by a
        title/section/phrase boost capped at 2x.
        """
        start = time.monotonic()
        top_k = top_k or self._default_top_k
        total_weight = semantic_weight + keyword_weight
        if total_weight <= 0:
            semantic_weight, keyword_weight, total_weight = 0.7, 0.3, 1.0
        w_semantic = semantic_weight / total_weight
        w_keyword = keyword_weight / total_weight

        candidates = await self.search(
            SearchQuery(query=query, top_k=top_k * 3, min_score=-1.0, filter=filter)
        )
        keywords = extract_keywords(query)

        scored: list[SearchResult] = []
        for result in candidates.results:
            combined = w_semantic * result.score + w_keyword * keyword_score(keywords, result)
            combined *= _ranking_boost(query, keywords, result, combined)
            if combined > 0:
                scored.append(result.model_copy(update={"score": combined}))

        scored.sort(key=lambda result: result.score, reverse=True)
        results = scored[:top_k]
        elapsed = round((time.monotonic() - start) * 1000, 2)
        logger.info(
            "hybrid_search",
            keywords=len(keywords),
            candidates=len(candidates.results),
            results_count=len(results),
        )
        return SearchResponse(results=results, total_results=len(results), processing_time_ms=elapsed)

    async def faceted_search(
        self,
        query: str,
        facets: list[str],
        top_k: int | None = None,
        filter: MetadataFilter | None = None,
        selected: dict[str, list[str]] | None = None,
        pool_size: int = 50,
    ) -> FacetedSearchResponse:
        """Hybrid search that also counts metadata values across the candidates.

        Facet counts cover a pool of up to ``max(pool_size, top_k)`` hybrid
        results so a caller can see how the wider match set breaks down;
        ``results`` is that pool narrowed by ``selected`` facet values and cut
        to ``top_k``.  Unknown field names raise :class:`ValidationError`.
        """
        _check_facet_fields(list(facets) + list(selected or {}))
        start = time.monotonic()
        top_k = top_k or self._default_top_k

        pool = await self.hybrid_search(query, top_k=max(pool_size, top_k), filter=filter)
        counted = extract_facets(pool.results, facets)
        narrowed = apply_facet_filters(pool.results, selected) if selected else pool.results
        results = narrowed[:top_k]

        elapsed = round((time.monotonic() - start) * 1000, 2)
        logger.info(
            "faceted_search",
            facets=facets,
            pool=len(pool.results),
            results_count=len(results),
        )
        return FacetedSearchResponse(
            query=query,
            results=results,
            facets=counted,
            total_results=len(narrowed),
            processing_time_ms=elapsed,
        )
