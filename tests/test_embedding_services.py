"""
Test suite for SentenceTransformerEmbedding.

The SentenceTransformer class is patched, so no weights are downloaded.
Dependencies: pytest, pytest-asyncio, unittest.mock
"""

import asyncio
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from core.exceptions import EmbeddingFailed
from infrastructure.embedding_services import SentenceTransformerEmbedding


def fake_encode(texts, **kwargs):
    """One row per text: [len(text), 1, 0] so order is observable."""
    return np.array([[float(len(t)), 1.0, 0.0] for t in texts])


@pytest.fixture
def model() -> MagicMock:
    instance = MagicMock()
    instance.encode.side_effect = fake_encode
    return instance


@pytest.fixture
def model_cls(model):
    with patch("infrastructure.embedding_services.SentenceTransformer") as cls:
        cls.return_value = model
        yield cls


class TestModelLoading:

    def test_construction_should_not_load_model(self, model_cls) -> None:
        service = SentenceTransformerEmbedding("test-model", batch_size=10)

        assert service.is_loaded is False
        model_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_first_call_should_load_from_local_cache(self, model_cls) -> None:
        # Arrange
        service = SentenceTransformerEmbedding("test-model", batch_size=10)

        # Act
        await service.generate_query_embedding("hello")

        # Assert
        model_cls.assert_called_once_with("test-model", local_files_only=True)
        assert service.is_loaded is True

    @pytest.mark.asyncio
    async def test_concurrent_callers_should_share_one_load(self, model_cls) -> None:
        # Arrange
        service = SentenceTransformerEmbedding("test-model", batch_size=10)

        # Act
        results = await asyncio.gather(
            *(service.generate_query_embedding(f"query {i}") for i in range(5))
        )

        # Assert
        assert len(results) == 5
        assert model_cls.call_count == 1

    @pytest.mark.asyncio
    async def test_cache_miss_should_fall_back_to_download(self, model) -> None:
        # Arrange
        with patch("infrastructure.embedding_services.SentenceTransformer") as cls:
            cls.side_effect = [OSError("not cached"), model]
            service = SentenceTransformerEmbedding("test-model", batch_size=10)

            # Act
            await service.generate_query_embedding("hello")

        # Assert
        assert cls.call_count == 2
        assert cls.call_args_list[1].args == ("test-model",)

    @pytest.mark.asyncio
    async def test_load_failure_should_raise_embedding_failed(self) -> None:
        with patch("infrastructure.embedding_services.SentenceTransformer") as cls:
            cls.side_effect = OSError("offline")
            service = SentenceTransformerEmbedding("test-model", batch_size=10)

            with pytest.raises(EmbeddingFailed):
                await service.generate_query_embedding("hello")

        assert service.is_loaded is False

    def test_invalid_batch_size_should_be_rejected(self) -> None:
        with pytest.raises(ValueError):
            SentenceTransformerEmbedding("test-model", batch_size=0)


class TestEncoding:

    @pytest.mark.asyncio
    async def test_batches_should_be_split_and_order_preserved(self, model_cls, model) -> None:
        # Arrange
        service = SentenceTransformerEmbedding("test-model", batch_size=10)
        texts = ["x" * (i + 1) for i in range(25)]

        # Act
        vectors = await service.generate_embeddings(texts)

        # Assert
        batch_sizes = [len(c.args[0]) for c in model.encode.call_args_list]
        assert batch_sizes == [10, 10, 5]
        assert len(vectors) == 25
        # First component grows with text length after normalization
        firsts = [v[0] for v in vectors]
        assert firsts == sorted(firsts)

    @pytest.mark.asyncio
    async def test_vectors_should_have_unit_length(self, model_cls) -> None:
        service = SentenceTransformerEmbedding("test-model", batch_size=10)

        vectors = await service.generate_embeddings(["alpha", "beta gamma"])

        for vector in vectors:
            assert np.linalg.norm(vector) == pytest.approx(1.0, abs=1e-6)

    @pytest.mark.asyncio
    async def test_encode_should_be_called_with_numpy_output(self, model_cls, model) -> None:
        service = SentenceTransformerEmbedding("test-model", batch_size=10)

        await service.generate_query_embedding("hello")

        kwargs = model.encode.call_args.kwargs
        assert kwargs["convert_to_numpy"] is True
        assert kwargs["show_progress_bar"] is False

    @pytest.mark.asyncio
    async def test_empty_list_should_not_load_model(self, model_cls) -> None:
        service = SentenceTransformerEmbedding("test-model", batch_size=10)

        assert await service.generate_embeddings([]) == []
        model_cls.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad", ["", "   "])
    async def test_blank_input_should_raise_embedding_failed(self, model_cls, bad: str) -> None:
        service = SentenceTransformerEmbedding("test-model", batch_size=10)

        with pytest.raises(EmbeddingFailed):
            await service.generate_query_embedding(bad)

        model_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_inference_error_should_raise_embedding_failed(self, model_cls, model) -> None:
        # Arrange
        model.encode.side_effect = RuntimeError("CUDA out of memory")
        service = SentenceTransformerEmbedding("test-model", batch_size=10)

        # Act / Assert
        with pytest.raises(EmbeddingFailed, match="inference failed"):
            await service.generate_embeddings(["some text"])

    @pytest.mark.asyncio
    async def test_wrong_vector_count_should_raise_embedding_failed(self, model_cls, model) -> None:
        model.encode.side_effect = lambda texts, **kwargs: np.ones((1, 3))
        service = SentenceTransformerEmbedding("test-model", batch_size=10)

        with pytest.raises(EmbeddingFailed):
            await service.generate_embeddings(["one", "two"])
