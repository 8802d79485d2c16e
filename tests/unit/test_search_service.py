"""Unit tests for semantic, hybrid and faceted search."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from complyx.models.filters import Eq
from complyx.models.rag import Facet, FacetValue, SearchQuery, SearchResult
from complyx.models.vectors import VectorMetadata
from complyx.providers.vector_store.memory_provider import MemoryVectorStore
from complyx.services.search_service import (
    SearchService,
    apply_facet_filters,
    extract_facets,
    extract_keywords,
    keyword_score,
)
from complyx.utils.errors import ValidationError
from tests.conftest import seed_store


def _result(
    text: str, title: str | None = None, section: str | None = None, **meta
) -> SearchResult:
    return SearchResult(
        id="r",
        score=0.5,
        text=text,
        metadata=VectorMetadata(text=text, document_id="d", title=title, section=section, **meta),
    )


class TestKeywordHelpers:
    def test_extract_keywords(self) -> None:
        assert extract_keywords("What are the Scope 3 emissions, and the emissions?") == [
            "scope",
            "emissions",
        ]

    def test_extract_keywords_empty(self) -> None:
        assert extract_keywords("is it an") == []

    def test_whole_word_scores_higher_than_substring(self) -> None:
        whole = keyword_score(["lease"], _result("a lease liability"))
        partial = keyword_score(["lease"], _result("leaseback arrangements"))
        assert whole == 1.0
        assert partial == 0.5

    def test_title_and_section_count(self) -> None:
        assert keyword_score(["climate"], _result("body", title="Climate risk")) == 1.0
        assert keyword_score(["b3"], _result("body", section="B3")) == 1.0

    def test_no_keywords(self) -> None:
        assert keyword_score([], _result("anything")) == 0.0


class TestSemanticSearch:
    @pytest.mark.asyncio
    async def test_ranked_and_thresholded(
        self, search_service: SearchService, memory_store: MemoryVectorStore
    ) -> None:
        await seed_store(
            memory_store,
            ("s2-chunk-0", "scope 3 emissions disclosure", {}),
            ("s2-chunk-1", "scope 3 emissions value chain upstream", {}),
            ("lease-chunk-0", "lessee right of use asset", {}),
        )

        response = await search_service.search(SearchQuery(query="scope 3 emissions disclosure"))

        assert response.results[0].id == "s2-chunk-0"
        assert response.results[0].score == pytest.approx(1.0)
        assert all(r.score >= 0.5 for r in response.results)
        assert "lease-chunk-0" not in [r.id for r in response.results]
        assert response.total_results == len(response.results)
        scores = [r.score for r in response.results]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.asyncio
    async def test_min_score_override(
        self, search_service: SearchService, memory_store: MemoryVectorStore
    ) -> None:
        await seed_store(
            memory_store,
            ("a-chunk-0", "scope 3 emissions", {}),
            ("b-chunk-0", "lessee right of use asset", {}),
        )
        response = await search_service.search(
            SearchQuery(query="scope 3 emissions", min_score=-1.0, top_k=5)
        )
        assert [r.id for r in response.results] == ["a-chunk-0", "b-chunk-0"]

    @pytest.mark.asyncio
    async def test_top_k_limits(
        self, search_service: SearchService, memory_store: MemoryVectorStore
    ) -> None:
        await seed_store(
            memory_store,
            *[(f"d{i}-chunk-0", "climate risk disclosure", {}) for i in range(5)],
        )
        response = await search_service.search(SearchQuery(query="climate risk disclosure", top_k=2))
        assert len(response.results) == 2

    @pytest.mark.asyncio
    async def test_filter_narrows(
        self, search_service: SearchService, memory_store: MemoryVectorStore
    ) -> None:
        await seed_store(
            memory_store,
            ("a-chunk-0", "climate risk disclosure", {"section": "B2"}),
            ("b-chunk-0", "climate risk disclosure", {"section": "B3"}),
        )
        response = await search_service.search(
            SearchQuery(query="climate risk disclosure", filter=Eq(field="section", value="B3"))
        )
        assert [r.id for r in response.results] == ["b-chunk-0"]

    @pytest.mark.asyncio
    async def test_empty_store(self, search_service: SearchService) -> None:
        response = await search_service.search(SearchQuery(query="anything at all"))
        assert response.results == []
        assert response.total_results == 0

    @pytest.mark.asyncio
    async def test_by_document_and_section(
        self, search_service: SearchService, memory_store: MemoryVectorStore
    ) -> None:
        await seed_store(
            memory_store,
            ("s1-chunk-0", "general requirements disclosure", {"section": "A"}),
            ("s2-chunk-0", "general requirements disclosure", {"section": "B"}),
        )
        by_doc = await search_service.search_by_document("general requirements disclosure", "s2")
        by_section = await search_service.search_by_section("general requirements disclosure", "A")
        assert [r.id for r in by_doc.results] == ["s2-chunk-0"]
        assert [r.id for r in by_section.results] == ["s1-chunk-0"]


class TestHybridSearch:
    @pytest.mark.asyncio
    async def test_title_match_is_boosted(
        self, search_service: SearchService, memory_store: MemoryVectorStore
    ) -> None:
        await seed_store(
            memory_store,
            ("plain-chunk-0", "transition plans and targets", {"title": "Guidance"}),
            ("titled-chunk-0", "transition plans and targets", {"title": "Transition plans"}),
        )

        response = await search_service.hybrid_search("transition plans", top_k=2)

        assert [r.id for r in response.results] == ["titled-chunk-0", "plain-chunk-0"]
        assert response.results[0].score > response.results[1].score

    @pytest.mark.asyncio
    async def test_keyword_only_match_surfaces(
        self, search_service: SearchService, memory_store: MemoryVectorStore
    ) -> None:
        await seed_store(
            memory_store,
            (
                "kw-chunk-0",
                "impairment testing of goodwill under ias 36 requires cash generating units",
                {},
            ),
        )
        semantic = await search_service.search(SearchQuery(query="goodwill"))
        hybrid = await search_service.hybrid_search("goodwill", top_k=5)
        assert semantic.results == []
        assert [r.id for r in hybrid.results] == ["kw-chunk-0"]

    @pytest.mark.asyncio
    async def test_top_k_and_ordering(
        self, search_service: SearchService, memory_store: MemoryVectorStore
    ) -> None:
        await seed_store(
            memory_store,
            *[(f"d{i}-chunk-0", f"scope {i} emissions", {}) for i in range(1, 7)],
        )
        response = await search_service.hybrid_search("scope emissions", top_k=3)
        assert len(response.results) == 3
        scores = [r.score for r in response.results]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.asyncio
    async def test_zero_weights_fall_back_to_defaults(
        self, search_service: SearchService, memory_store: MemoryVectorStore
    ) -> None:
        await seed_store(memory_store, ("a-chunk-0", "climate resilience", {}))
        response = await search_service.hybrid_search(
            "climate resilience", semantic_weight=0.0, keyword_weight=0.0
        )
        assert [r.id for r in response.results] == ["a-chunk-0"]


class TestFacetHelpers:
    def test_counts_skip_empty_values(self) -> None:
        results = [
            _result("a", source="IFRS Foundation"),
            _result("b", source="IFRS Foundation"),
            _result("c", source="GHG Protocol"),
            _result("d", source=""),
            _result("e"),
        ]
        assert extract_facets(results, ["source"]) == [
            Facet(
                field="source",
                values=[
                    FacetValue(value="IFRS Foundation", count=2),
                    FacetValue(value="GHG Protocol", count=1),
                ],
            )
        ]

    def test_ties_ordered_by_value(self) -> None:
        results = [_result("a", section="B3"), _result("b", section="A1")]
        [facet] = extract_facets(results, ["section"])
        assert [v.value for v in facet.values] == ["A1", "B3"]

    def test_non_string_values_rendered(self) -> None:
        published = datetime(2023, 6, 26, tzinfo=timezone.utc)
        results = [
            _result("a", trusted_source=True, publish_date=published),
            _result("b", trusted_source=False),
        ]
        trusted, dates = extract_facets(results, ["trusted_source", "publish_date"])
        assert {v.value for v in trusted.values} == {"true", "false"}
        assert dates.values == [FacetValue(value=published.isoformat(), count=1)]

    def test_field_with_no_values_has_empty_facet(self) -> None:
        assert extract_facets([_result("a")], ["url"]) == [Facet(field="url", values=[])]

    def test_selection_ors_values_and_ands_fields(self) -> None:
        results = [
            _result("a", source="IFRS Foundation", document_type="standard"),
            _result("b", source="IFRS Foundation", document_type="guidance"),
            _result("c", source="GHG Protocol", document_type="standard"),
            _result("d", source="EFRAG", document_type="standard"),
        ]
        kept = apply_facet_filters(
            results,
            {"source": ["IFRS Foundation", "GHG Protocol"], "document_type": ["standard"]},
        )
        assert [r.text for r in kept] == ["a", "c"]

    def test_empty_selection_keeps_everything(self) -> None:
        results = [_result("a", source="x"), _result("b")]
        assert apply_facet_filters(results, {"source": []}) == results


class TestFacetedSearch:
    @pytest.fixture
    def entries(self) -> list[tuple[str, str, dict]]:
        return [
            ("a-chunk-0", "scope 3 emissions", {"source": "IFRS Foundation", "document_type": "standard"}),
            ("b-chunk-0", "gross emissions", {"source": "IFRS Foundation", "document_type": "standard"}),
            ("c-chunk-0", "emissions guidance", {"source": "IFRS Foundation", "document_type": "guidance"}),
            ("d-chunk-0", "emissions inventory", {"source": "GHG Protocol", "document_type": "guidance"}),
            ("e-chunk-0", "emissions targets", {}),
        ]

    @pytest.mark.asyncio
    async def test_facets_cover_pool_beyond_top_k(
        self,
        search_service: SearchService,
        memory_store: MemoryVectorStore,
        entries: list[tuple[str, str, dict]],
    ) -> None:
        await seed_store(memory_store, *entries)

        response = await search_service.faceted_search(
            "emissions", facets=["source", "document_type"], top_k=2
        )

        assert response.query == "emissions"
        assert len(response.results) == 2
        assert response.total_results == 5
        source, document_type = response.facets
        assert source == Facet(
            field="source",
            values=[
                FacetValue(value="IFRS Foundation", count=3),
                FacetValue(value="GHG Protocol", count=1),
            ],
        )
        assert [(v.value, v.count) for v in document_type.values] == [
            ("guidance", 2),
            ("standard", 2),
        ]

    @pytest.mark.asyncio
    async def test_selection_narrows_results_not_facets(
        self,
        search_service: SearchService,
        memory_store: MemoryVectorStore,
        entries: list[tuple[str, str, dict]],
    ) -> None:
        await seed_store(memory_store, *entries)

        response = await search_service.faceted_search(
            "emissions", facets=["source"], selected={"source": ["GHG Protocol"]}
        )

        assert [r.id for r in response.results] == ["d-chunk-0"]
        assert response.total_results == 1
        assert response.facets[0].values[0] == FacetValue(value="IFRS Foundation", count=3)

    @pytest.mark.asyncio
    async def test_metadata_filter_applies_before_counting(
        self,
        search_service: SearchService,
        memory_store: MemoryVectorStore,
        entries: list[tuple[str, str, dict]],
    ) -> None:
        await seed_store(memory_store, *entries)

        response = await search_service.faceted_search(
            "emissions",
            facets=["source"],
            filter=Eq(field="document_type", value="guidance"),
        )

        assert {r.id for r in response.results} == {"c-chunk-0", "d-chunk-0"}
        assert [(v.value, v.count) for v in response.facets[0].values] == [
            ("GHG Protocol", 1),
            ("IFRS Foundation", 1),
        ]

    @pytest.mark.asyncio
    async def test_unknown_fields_rejected_together(self, search_service: SearchService) -> None:
        with pytest.raises(ValidationError) as excinfo:
            await search_service.faceted_search(
                "emissions", facets=["source", "author"], selected={"colour": ["red"]}
            )
        assert len(excinfo.value.errors) == 2
        assert "author" in excinfo.value.message

    @pytest.mark.asyncio
    async def test_empty_store(self, search_service: SearchService) -> None:
        response = await search_service.faceted_search("emissions", facets=["source"])
        assert response.results == []
        assert response.facets == [Facet(field="source", values=[])]
