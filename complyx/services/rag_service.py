"""Retrieval-augmented generation.

:class:`RAGService` retrieves chunks through :class:`SearchService`, keeps
the best chunk per document, re-ranks documents with priority and scope
boosts, assembles a numbered context block and asks the LLM to answer from
it.  :meth:`RAGService.stream_response` does the same but yields events as
tokens arrive and honours a :class:`CancellationToken`.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import aclosing

import structlog

from complyx.interfaces.llm_provider import ILLMProvider
from complyx.models.documents import Priority
from complyx.models.filters import MetadataFilter
from complyx.models.rag import (
    ChatMessage,
    RAGContext,
    RAGResponse,
    RetrievedDocument,
    SearchQuery,
    SearchResult,
    SourceRank,
    StreamEvent,
)
from complyx.models.vectors import VectorMetadata
from complyx.services.advanced_rag import (
    DEFAULT_RELIABILITY,
    filter_by_temporal_relevance,
    source_reliability,
)
from complyx.services.search_service import SearchService

logger = structlog.get_logger(logger_name=__name__)

_SUSTAINABILITY_TERMS = (
    "s1",
    "s2",
    "sustainability",
    "climate",
    "esg",
    "environmental",
    "social",
    "governance",
    "green",
    "emission",
    "carbon",
    "disclosure",
)

_PROMPT_TEMPLATE = """\
You are Complyx, an assistant specialised in IFRS standards and general accounting, \
with particular expertise in IFRS S1 (sustainability-related financial disclosures) \
and IFRS S2 (climate-related disclosures).

Use the following context from IFRS documentation and accounting resources to answer \
the user's question.

Context:
{context}

User Question: {query}

Instructions:
1. Answer the question based on the provided context.
2. If the context does not contain the information needed, say so clearly.
3. Cite the documents and sections you draw on.
4. Keep the tone professional and the guidance actionable.

Answer:"""


class CancellationToken:
    """Cooperative cancellation flag for a streamed response."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


def is_sustainability_query(query: str) -> bool:
    lowered = query.lower()
    return any(term in lowered for term in _SUSTAINABILITY_TERMS)


def adjusted_score(score: float, metadata: VectorMetadata, sustainability: bool) -> float:
    """Apply priority, scope and title boosts to a similarity score."""
    adjusted = score
    if metadata.priority == Priority.HIGH.value:
        adjusted *= 1.3
    elif metadata.priority == Priority.MEDIUM.value:
        adjusted *= 1.1

    if sustainability:
        if metadata.scope in ("s1", "s2"):
            adjusted *= 1.4
        title = (metadata.title or "").lower()
        if "s1" in title or "s2" in title:
            adjusted *= 1.2
    return adjusted


def rank_documents(
    results: list[SearchResult], query: str, limit: int
) -> list[RetrievedDocument]:
    """Best chunk per document, ordered by boosted score, numbered from 1."""
    sustainability = is_sustainability_query(query)
    best: dict[str, tuple[float, SearchResult]] = {}
    for result in results:
        boosted = adjusted_score(result.score, result.metadata, sustainability)
        document_id = result.metadata.document_id
        current = best.get(document_id)
        if current is None or boosted > current[0]:
            best[document_id] = (boosted, result)

    ordered = sorted(best.values(), key=lambda pair: pair[0], reverse=True)[:limit]
    return [
        RetrievedDocument(
            id=result.id,
            score=result.score,
            adjusted_score=boosted,
            rank=position,
            text=result.text,
            metadata=result.metadata,
        )
        for position, (boosted, result) in enumerate(ordered, start=1)
    ]


def build_context(documents: list[RetrievedDocument]) -> RAGContext:
    blocks = []
    for doc in documents:
        header = f"[Document {doc.rank} - Rank {doc.rank}]"
        if doc.metadata.title:
            header += f" {doc.metadata.title}"
        if doc.metadata.section:
            header += f" (Section: {doc.metadata.section})"
        blocks.append(f"{header}\n{doc.text}\n")

    grouped: dict[str, list[RetrievedDocument]] = {}
    for doc in documents:
        grouped.setdefault(doc.metadata.source or "unknown", []).append(doc)
    ranking = sorted(
        (
            SourceRank(
                source=source,
                document_count=len({doc.metadata.document_id for doc in docs}),
                average_score=sum(doc.score for doc in docs) / len(docs),
                documents=list(dict.fromkeys(doc.metadata.document_id for doc in docs)),
            )
            for source, docs in grouped.items()
        ),
        key=lambda rank: rank.average_score,
        reverse=True,
    )

    return RAGContext(
        context_text="\n---\n\n".join(blocks),
        relevant_documents=documents,
        source_ranking=ranking,
    )


def extract_citations(documents: list[RetrievedDocument]) -> list[str]:
    """One citation per document: URL, else source and section, else title."""
    citations: dict[str, None] = {}
    for doc in documents:
        meta = doc.metadata
        if meta.url:
            citation = meta.url
        elif meta.source:
            citation = f"{meta.source} - {meta.section}" if meta.section else meta.source
        else:
            citation = meta.title or meta.document_id
        citations.setdefault(citation, None)
    return list(citations)


def confidence_score(documents: list[RetrievedDocument]) -> float:
    """``0.7 * mean similarity + 0.3 * mean source reliability``, clamped to [0, 1]."""
    if not documents:
        return 0.0
    average = sum(doc.score for doc in documents) / len(documents)
    reliability = source_reliability(documents)
    reliabilities = [
        reliability.get(doc.metadata.source or "unknown", DEFAULT_RELIABILITY) for doc in documents
    ]
    combined = 0.7 * average + 0.3 * (sum(reliabilities) / len(reliabilities))
    return round(max(0.0, min(1.0, combined)), 4)


class RAGService:
    """Answers questions from the knowledge base.

    Parameters
    ----------
    search_service:
        Retrieval backend.
    llm_provider:
        Generates the answer.
    temperature / max_tokens:
        Passed to every LLM call.
    """

    def __init__(
        self,
        search_service: SearchService,
        llm_provider: ILLMProvider,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> None:
        self._search_service = search_service
        self._llm = llm_provider
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def retrieve(
        self,
        query: str,
        top_k: int = 5,
        min_score: float = 0.5,
        filter: MetadataFilter | None = None,
        exclude_outdated: bool = False,
    ) -> RAGContext:
        """Search, rank and assemble the context block for *query*."""
        response = await self._search_service.search(
            SearchQuery(query=query, top_k=top_k, min_score=min_score, filter=filter)
        )
        documents = rank_documents(response.results, query, top_k)
        if exclude_outdated:
            documents = [
                doc.model_copy(update={"rank": position})
                for position, doc in enumerate(filter_by_temporal_relevance(documents), start=1)
            ]
        return build_context(documents)

    def build_messages(
        self, query: str, context: RAGContext, history: list[ChatMessage] | None = None
    ) -> list[ChatMessage]:
        prompt = _PROMPT_TEMPLATE.format(
            context=context.context_text or "(no relevant documents found)",
            query=query,
        )
        return [*(history or []), ChatMessage(role="user", content=prompt)]

    async def generate_response(
        self,
        query: str,
        history: list[ChatMessage] | None = None,
        top_k: int = 5,
        min_score: float = 0.5,
        filter: MetadataFilter | None = None,
        exclude_outdated: bool = False,
    ) -> RAGResponse:
        """Retrieve context for *query* and generate a cited answer.

        Raises
        ------
        complyx.utils.errors.RAGError
            If embedding or vector search fails.
        complyx.utils.errors.LLMError
            If generation fails.
        """
        context = await self.retrieve(query, top_k, min_score, filter, exclude_outdated)
        completion = await self._llm.complete(
            self.build_messages(query, context, history),
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        citations = extract_citations(context.relevant_documents)
        confidence = confidence_score(context.relevant_documents)

        logger.info(
            "rag_response_generated",
            documents=len(context.relevant_documents),
            citations=len(citations),
            confidence=confidence,
            model=completion.model,
        )
        return RAGResponse(
            response=completion.content,
            context=context,
            citations=citations,
            model=completion.model,
            confidence=confidence,
        )

    async def stream_response(
        self,
        query: str,
        history: list[ChatMessage] | None = None,
        cancel_token: CancellationToken | None = None,
        top_k: int = 5,
        min_score: float = 0.5,
        filter: MetadataFilter | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Yield a ``context`` event, one ``content`` event per chunk, then ``done``.

        The token is checked before each chunk is emitted.  Once cancelled
        the upstream stream is closed and the final ``done`` event carries
        ``cancelled=True``.
        """
        context = await self.retrieve(query, top_k, min_score, filter)
        citations = extract_citations(context.relevant_documents)
        yield StreamEvent(type="context", context=context)

        cancelled = False
        chunks = 0
        upstream = self._llm.stream(
            self.build_messages(query, context, history),
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        async with aclosing(upstream) as tokens:
            async for token in tokens:
                if cancel_token is not None and cancel_token.is_cancelled:
                    cancelled = True
                    break
                chunks += 1
                yield StreamEvent(type="content", content=token)

        logger.info("rag_stream_finished", chunks=chunks, cancelled=cancelled)
        yield StreamEvent(type="done", done=True, citations=citations, cancelled=cancelled)
