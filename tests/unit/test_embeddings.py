"""Unit tests for embedding providers."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, Mock

import httpx
import pytest

from aifamily.config import AIFamilyConfig, EmbeddingConfig
from aifamily.errors import EmbeddingError
from aifamily.memory.embeddings import (
    HashEmbeddingProvider,
    OpenAIEmbeddingProvider,
    RandomEmbeddingProvider,
    create_embedder,
)
from aifamily.memory.relevance import cosine_similarity


class TestHashEmbeddingProvider:
    """Tests for HashEmbeddingProvider."""

    @pytest.mark.asyncio
    async def test_dimensions(self) -> None:
        embedder = HashEmbeddingProvider(dimensions=64)
        vector = await embedder.embed("favorite color is blue")
        assert len(vector) == 64

    @pytest.mark.asyncio
    async def test_deterministic_across_instances(self) -> None:
        """Test the same text always maps to the same vector."""
        first = await HashEmbeddingProvider(dimensions=32).embed("weekly budget review")
        second = await HashEmbeddingProvider(dimensions=32).embed("weekly budget review")
        assert first == second

    @pytest.mark.asyncio
    async def test_unit_norm(self) -> None:
        vector = await HashEmbeddingProvider().embed("soccer practice on tuesday")
        assert cosine_similarity(vector, vector) == pytest.approx(1.0)
        assert sum(x * x for x in vector) == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_related_texts_are_closer(self) -> None:
        """Test overlapping texts score higher than unrelated ones."""
        embedder = HashEmbeddingProvider()
        query = await embedder.embed("what is my favorite color")
        related = await embedder.embed("My favorite color is blue")
        unrelated = await embedder.embed("Dentist appointment next Thursday")

        assert cosine_similarity(query, related) > cosine_similarity(query, unrelated)
        assert cosine_similarity(query, related) > 0.2

    @pytest.mark.asyncio
    async def test_empty_text_gives_zero_vector(self) -> None:
        vector = await HashEmbeddingProvider(dimensions=16).embed("")
        assert vector == [0.0] * 16

    @pytest.mark.asyncio
    async def test_feature_cache_is_bounded(self) -> None:
        """Test many distinct words never grow the cache past its limit."""
        embedder = HashEmbeddingProvider(dimensions=8, cache_size=32)
        reference = await HashEmbeddingProvider(dimensions=8).embed("word0 word1")

        for i in range(200):
            await embedder.embed(f"word{i} token{i * 7}")

        info = embedder._feature_vector.cache_info()
        assert info.maxsize == 32
        assert info.currsize <= 32
        assert await embedder.embed("word0 word1") == reference


class TestRandomEmbeddingProvider:
    """Tests for RandomEmbeddingProvider."""

    @pytest.mark.asyncio
    async def test_seeded_vectors(self) -> None:
        first = await RandomEmbeddingProvider(dimensions=10, seed=7).embed("anything")
        second = await RandomEmbeddingProvider(dimensions=10, seed=7).embed("something else")
        assert len(first) == 10
        assert first == second
        assert all(0.0 <= x < 1.0 for x in first)


class TestOpenAIEmbeddingProvider:
    """Tests for OpenAIEmbeddingProvider."""

    @pytest.mark.asyncio
    async def test_embed_success(self) -> None:
        provider = OpenAIEmbeddingProvider(api_key="sk-test")

        mock_response = Mock()
        mock_response.data = [Mock(embedding=[0.1, 0.2, 0.3])]
        provider._client.embeddings.create = AsyncMock(return_value=mock_response)

        vector = await provider.embed("hello")

        assert vector == [0.1, 0.2, 0.3]
        call_kwargs = provider._client.embeddings.create.call_args.kwargs
        assert call_kwargs["model"] == "text-embedding-3-small"
        assert call_kwargs["input"] == "hello"

    @pytest.mark.asyncio
    async def test_transport_error_raises_embedding_error(self) -> None:
        provider = OpenAIEmbeddingProvider(api_key="sk-test")
        provider._client.embeddings.create = AsyncMock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(EmbeddingError, match="transport error"):
            await provider.embed("hello")

    @pytest.mark.asyncio
    async def test_empty_data_raises_embedding_error(self) -> None:
        provider = OpenAIEmbeddingProvider(api_key="sk-test")
        provider._client.embeddings.create = AsyncMock(return_value=Mock(data=[]))

        with pytest.raises(EmbeddingError, match="no embedding data"):
            await provider.embed("hello")

    @pytest.mark.asyncio
    async def test_close(self) -> None:
        provider = OpenAIEmbeddingProvider(api_key="sk-test")
        provider._http_client.aclose = AsyncMock()

        await provider.close()

        provider._http_client.aclose.assert_called_once()


class TestCreateEmbedder:
    """Tests for create_embedder."""

    def test_default_is_hash(self, temp_dir: Path) -> None:
        config = AIFamilyConfig(data_dir=str(temp_dir), api_key="sk-x")
        embedder = create_embedder(config, "sk-x")
        assert isinstance(embedder, HashEmbeddingProvider)
        assert embedder.dimensions == 256

    def test_random_backend(self, temp_dir: Path) -> None:
        config = AIFamilyConfig(
            data_dir=str(temp_dir), api_key="sk-x", embedding=EmbeddingConfig(backend="random", dimensions=10)
        )
        assert isinstance(create_embedder(config, "sk-x"), RandomEmbeddingProvider)

    def test_openai_backend_with_openai_key(self, temp_dir: Path) -> None:
        config = AIFamilyConfig(data_dir=str(temp_dir), api_key="sk-x", embedding=EmbeddingConfig(backend="openai"))
        assert isinstance(create_embedder(config, "sk-x"), OpenAIEmbeddingProvider)

    def test_openai_backend_falls_back_for_groq_key(self, temp_dir: Path) -> None:
        """Test a Groq key cannot drive OpenAI embeddings."""
        config = AIFamilyConfig(
            data_dir=str(temp_dir), api_key="gsk_x", embedding=EmbeddingConfig(backend="openai")
        )
        assert isinstance(create_embedder(config, "gsk_x"), HashEmbeddingProvider)
