"""Test suite for RetrievalOrchestrator."""

import pytest

from core.domain import ChunkOptions
from services.retrieval import RetrievalOrchestrator

from conftest import THREE_TOPIC_DOCUMENT


@pytest.fixture
def retriever(embedder, vector_store) -> RetrievalOrchestrator:
    return RetrievalOrchestrator(embedder, vector_store)


class TestRetrieve:

    @pytest.mark.asyncio
    async def test_no_enabled_sources_should_skip_embedding(self, retriever, embedder) -> None:
        # Act
        results = await retriever.retrieve("anything", [])

        # Assert
        assert results == []
        assert embedder.query_calls == 0

    @pytest.mark.asyncio
    async def test_should_rank_the_matching_topic_first(self, retriever, ingestion) -> None:
        # Arrange
        await ingestion.index_source("doc1", "Doc 1", THREE_TOPIC_DOCUMENT, ChunkOptions(512, 50, 100))

        # Act
        results = await retriever.retrieve("ocean tide sailing", ["doc1"], top_k=5, min_score=0.3)

        # Assert
        assert [r.chunk.id for r in results] == ["doc1-chunk-1", "doc1-chunk-2"]
        assert results[0].score > results[1].score
        assert all(r.chunk.source_id == "doc1" for r in results)

    @pytest.mark.asyncio
    async def test_should_only_search_enabled_sources(self, retriever, ingestion) -> None:
        # Arrange
        await ingestion.index_source("doc1", "Doc 1", "ocean tide sailing notes", ChunkOptions())
        await ingestion.index_source("doc2", "Doc 2", "ocean tide sailing log", ChunkOptions())

        # Act
        results = await retriever.retrieve("ocean tide sailing", ["doc2"])

        # Assert
        assert [r.chunk.source_id for r in results] == ["doc2"]

    @pytest.mark.asyncio
    async def test_duplicate_source_ids_should_not_duplicate_results(self, retriever, ingestion) -> None:
        await ingestion.index_source("doc1", "Doc 1", "ocean tide sailing notes", ChunkOptions())

        results = await retriever.retrieve("ocean tide sailing", ["doc1", "doc1"])

        assert len(results) == 1
