"""Unit tests for BatchEmbedder."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import FakeEmbeddingProvider
from studyrag.services.ingestion.embedder import BatchEmbedder
from studyrag.utils.errors import EmbeddingError


def _mock_provider(embed: AsyncMock, dimension: int = 2) -> MagicMock:
    provider = MagicMock()
    provider.embed = embed
    provider.get_dimension.return_value = dimension
    provider.get_provider_name.return_value = "mock_embedding"
    return provider


class TestBatching:
    @pytest.mark.asyncio
    async def test_batches_preserve_order(self) -> None:
        provider = FakeEmbeddingProvider(dimension=16)
        embedder = BatchEmbedder(provider, batch_size=5, batch_delay=0)
        texts = [f"topic number {i}" for i in range(10)]

        vectors = await embedder.embed(texts)

        assert len(provider.calls) == 2
        assert provider.calls[0] == texts[:5]
        assert provider.calls[1] == texts[5:]
        assert vectors == [provider.vector(t) for t in texts]

    @pytest.mark.asyncio
    async def test_partial_last_batch(self) -> None:
        provider = FakeEmbeddingProvider(dimension=8)
        embedder = BatchEmbedder(provider, batch_size=4, batch_delay=0)

        vectors = await embedder.embed([f"text {i}" for i in range(9)])

        assert [len(call) for call in provider.calls] == [4, 4, 1]
        assert len(vectors) == 9

    @pytest.mark.asyncio
    async def test_empty_input_makes_no_calls(self) -> None:
        provider = FakeEmbeddingProvider()
        assert await BatchEmbedder(provider).embed([]) == []
        assert provider.calls == []

    def test_invalid_batch_size(self) -> None:
        with pytest.raises(ValueError, match="batch_size"):
            BatchEmbedder(FakeEmbeddingProvider(), batch_size=0)


class TestFailures:
    @pytest.mark.asyncio
    async def test_provider_embedding_error_propagates(self) -> None:
        embedder = BatchEmbedder(FakeEmbeddingProvider(fail=True), batch_delay=0)
        with pytest.raises(EmbeddingError, match="fake embedding outage"):
            await embedder.embed(["a text"])

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_wrapped(self) -> None:
        provider = _mock_provider(AsyncMock(side_effect=RuntimeError("socket closed")))
        embedder = BatchEmbedder(provider, batch_delay=0)

        with pytest.raises(EmbeddingError) as exc_info:
            await embedder.embed(["a text"])

        assert "socket closed" in exc_info.value.message
        assert exc_info.value.provider_name == "mock_embedding"
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_failure_in_second_batch_aborts(self) -> None:
        embed = AsyncMock(side_effect=[[[1.0, 0.0]], RuntimeError("rate limited")])
        embedder = BatchEmbedder(_mock_provider(embed), batch_size=1, batch_delay=0)

        with pytest.raises(EmbeddingError, match="batch 2/2"):
            await embedder.embed(["first", "second"])

    @pytest.mark.asyncio
    async def test_wrong_vector_count(self) -> None:
        embed = AsyncMock(return_value=[[1.0, 0.0]])
        embedder = BatchEmbedder(_mock_provider(embed), batch_delay=0)

        with pytest.raises(EmbeddingError, match="returned 1 vectors for 2 texts"):
            await embedder.embed(["one", "two"])

    @pytest.mark.asyncio
    async def test_inconsistent_dimensions(self) -> None:
        embed = AsyncMock(return_value=[[1.0, 0.0], [1.0, 0.0, 0.0]])
        embedder = BatchEmbedder(_mock_provider(embed), batch_delay=0)

        with pytest.raises(EmbeddingError, match="Inconsistent embedding dimensions"):
            await embedder.embed(["one", "two"])

    @pytest.mark.asyncio
    async def test_vectors_must_match_provider_dimension(self) -> None:
        embed = AsyncMock(return_value=[[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
        embedder = BatchEmbedder(_mock_provider(embed, dimension=768), batch_delay=0)

        with pytest.raises(EmbeddingError, match="dimension 3 does not match provider dimension 768"):
            await embedder.embed(["a", "b"])

    @pytest.mark.asyncio
    async def test_empty_vectors_rejected(self) -> None:
        embed = AsyncMock(return_value=[[]])
        embedder = BatchEmbedder(_mock_provider(embed), batch_delay=0)

        with pytest.raises(EmbeddingError):
            await embedder.embed(["one"])

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        async def slow(texts: list[str]) -> list[list[float]]:
            await asyncio.sleep(1.0)
            return [[1.0] for _ in texts]

        embedder = BatchEmbedder(_mock_provider(AsyncMock(side_effect=slow)), timeout=0.01)

        with pytest.raises(EmbeddingError, match="timed out"):
            await embedder.embed(["one"])
