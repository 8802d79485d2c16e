"""Unit tests for the in-process vector store and cosine similarity."""

from __future__ import annotations

import pytest

from complyx.models.filters import Contains, Eq, Not
from complyx.models.vectors import VectorMetadata, VectorRecord
from complyx.providers.vector_store.memory_provider import MemoryVectorStore, cosine_similarity
from complyx.utils.errors import ConfigurationError


def _record(record_id: str, vector: list[float], document_id: str = "doc", **meta) -> VectorRecord:
    return VectorRecord(
        id=record_id,
        vector=vector,
        metadata=VectorMetadata(text=f"text of {record_id}", document_id=document_id, **meta),
    )


class TestCosineSimilarity:
    def test_identical_vectors(self) -> None:
        assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self) -> None:
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite_vectors(self) -> None:
        assert cosine_similarity([1.0, 1.0], [-1.0, -1.0]) == pytest.approx(-1.0)

    def test_zero_vector_scores_zero(self) -> None:
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0

    def test_length_mismatch(self) -> None:
        with pytest.raises(ConfigurationError):
            cosine_similarity([1.0], [1.0, 2.0])


class TestMemoryVectorStore:
    @pytest.fixture()
    def store(self) -> MemoryVectorStore:
        return MemoryVectorStore(dimension=3)

    def test_rejects_non_positive_dimension(self) -> None:
        with pytest.raises(ConfigurationError):
            MemoryVectorStore(dimension=0)

    @pytest.mark.asyncio
    async def test_connect_is_idempotent(self, store: MemoryVectorStore) -> None:
        await store.connect()
        await store.connect()
        assert store.is_connected()
        await store.disconnect()
        assert not store.is_connected()

    @pytest.mark.asyncio
    async def test_insert_and_search_ranked(self, store: MemoryVectorStore) -> None:
        await store.insert_batch(
            [
                _record("a", [1.0, 0.0, 0.0]),
                _record("b", [0.7, 0.7, 0.0]),
                _record("c", [0.0, 0.0, 1.0]),
            ]
        )
        hits = await store.search([1.0, 0.0, 0.0], top_k=2)
        assert [hit.id for hit in hits] == ["a", "b"]
        assert hits[0].score == pytest.approx(1.0)
        assert hits[0].score >= hits[1].score

    @pytest.mark.asyncio
    async def test_insert_overwrites_same_id(self, store: MemoryVectorStore) -> None:
        await store.insert(_record("a", [1.0, 0.0, 0.0]))
        await store.insert(_record("a", [0.0, 1.0, 0.0]))
        assert await store.count() == 1
        stored = await store.get("a")
        assert stored is not None
        assert stored.vector == [0.0, 1.0, 0.0]

    @pytest.mark.asyncio
    async def test_dimension_mismatch_rejects_whole_batch(self, store: MemoryVectorStore) -> None:
        with pytest.raises(ConfigurationError):
            await store.insert_batch([_record("a", [1.0, 0.0, 0.0]), _record("b", [1.0, 0.0])])
        assert await store.count() == 0

    @pytest.mark.asyncio
    async def test_search_dimension_mismatch(self, store: MemoryVectorStore) -> None:
        with pytest.raises(ConfigurationError):
            await store.search([1.0, 0.0])

    @pytest.mark.asyncio
    async def test_filter_applied_before_top_k(self, store: MemoryVectorStore) -> None:
        await store.insert_batch(
            [
                _record("best", [1.0, 0.0, 0.0], section="A"),
                _record("second", [0.9, 0.1, 0.0], section="A"),
                _record("wanted", [0.1, 0.9, 0.0], section="B3"),
            ]
        )
        hits = await store.search([1.0, 0.0, 0.0], top_k=1, filter=Eq(field="section", value="B3"))
        assert [hit.id for hit in hits] == ["wanted"]

    @pytest.mark.asyncio
    async def test_compound_filter(self, store: MemoryVectorStore) -> None:
        await store.insert_batch(
            [
                _record("a", [1.0, 0.0, 0.0], title="IFRS S2 Climate"),
                _record("b", [1.0, 0.0, 0.0], title="IFRS 16 Leases"),
            ]
        )
        hits = await store.search(
            [1.0, 0.0, 0.0], top_k=5, filter=Not(filter=Contains(field="title", value="lease"))
        )
        assert [hit.id for hit in hits] == ["a"]

    @pytest.mark.asyncio
    async def test_ties_keep_insertion_order(self, store: MemoryVectorStore) -> None:
        await store.insert_batch(
            [_record(name, [1.0, 0.0, 0.0]) for name in ("first", "second", "third")]
        )
        hits = await store.search([1.0, 0.0, 0.0], top_k=3)
        assert [hit.id for hit in hits] == ["first", "second", "third"]

    @pytest.mark.asyncio
    async def test_zero_top_k_returns_nothing(self, store: MemoryVectorStore) -> None:
        await store.insert(_record("a", [1.0, 0.0, 0.0]))
        assert await store.search([1.0, 0.0, 0.0], top_k=0) == []

    @pytest.mark.asyncio
    async def test_delete_ignores_unknown_ids(self, store: MemoryVectorStore) -> None:
        await store.insert_batch([_record("a", [1.0, 0.0, 0.0]), _record("b", [0.0, 1.0, 0.0])])
        assert await store.delete(["a", "missing"]) == 1
        assert await store.get("a") is None
        assert await store.count() == 1

    @pytest.mark.asyncio
    async def test_delete_by_document(self, store: MemoryVectorStore) -> None:
        await store.insert_batch(
            [
                _record("s2-chunk-0", [1.0, 0.0, 0.0], document_id="s2"),
                _record("s2-chunk-1", [0.0, 1.0, 0.0], document_id="s2"),
                _record("s1-chunk-0", [0.0, 0.0, 1.0], document_id="s1"),
            ]
        )
        assert await store.count_by_document("s2") == 2
        assert await store.delete_by_document("s2") == 2
        assert await store.count_by_document("s2") == 0
        assert await store.count() == 1
        assert await store.delete_by_document("s2") == 0

    @pytest.mark.asyncio
    async def test_large_batch_is_fully_stored(self, store: MemoryVectorStore) -> None:
        records = [_record(f"r{i}", [1.0, float(i), 0.0]) for i in range(250)]
        assert await store.insert_batch(records) == 250
        assert await store.count() == 250
