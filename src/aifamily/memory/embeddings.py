"""Embedding providers for the vector store.

The engine only needs a fixed-length vector per text. Three strategies
are available:

* HashEmbeddingProvider: deterministic random indexing over word
  unigrams and character trigrams. No model, no network.
* RandomEmbeddingProvider: uniform random vectors. Placeholder behaviour,
  similarity between texts is meaningless.
* OpenAIEmbeddingProvider: the OpenAI embeddings endpoint.
"""

from __future__ import annotations

import hashlib
import logging
import re
from functools import lru_cache
from typing import Protocol

import httpx
import numpy as np
from openai import APIError, AsyncOpenAI

from aifamily.brain.providers import ProviderKind, detect_provider
from aifamily.config import AIFamilyConfig, EmbeddingBackend
from aifamily.errors import EmbeddingError

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"[a-z0-9']+")


class EmbeddingProvider(Protocol):
    """Produces a fixed-length vector for arbitrary text."""

    async def embed(self, text: str) -> list[float]:
        """Embed text. Raises EmbeddingError on failure."""
        ...


class HashEmbeddingProvider:
    """
    Deterministic embeddings using random indexing.

    Each feature (word, or character trigram within a word) is mapped to a
    pseudo-random vector seeded from its SHA-256 digest. The text vector
    is the weighted sum of its feature vectors, L2-normalized. Texts
    sharing words or word fragments get similar vectors.

    Example:
        >>> embedder = HashEmbeddingProvider(dimensions=64)
        >>> vector = await embedder.embed("favorite color is blue")
        >>> len(vector)
        64
    """

    def __init__(
        self,
        dimensions: int = 256,
        word_weight: float = 1.0,
        ngram_weight: float = 0.5,
        cache_size: int = 50_000,
    ) -> None:
        self.dimensions = dimensions
        self.word_weight = word_weight
        self.ngram_weight = ngram_weight
        self._feature_vector = lru_cache(maxsize=cache_size)(self._compute_feature_vector)

    def _compute_feature_vector(self, feature: str) -> np.ndarray:
        seed = int.from_bytes(hashlib.sha256(feature.encode("utf-8")).digest()[:8], "big")
        return np.random.default_rng(seed).standard_normal(self.dimensions)

    @staticmethod
    def _features(text: str) -> tuple[list[str], list[str]]:
        words = _WORD_RE.findall(text.lower())
        ngrams: list[str] = []
        for word in words:
            padded = f"#{word}#"
            ngrams.extend(padded[i:i + 3] for i in range(len(padded) - 2))
        return [w for w in words if len(w) > 1], ngrams

    async def embed(self, text: str) -> list[float]:
        words, ngrams = self._features(text)

        total = np.zeros(self.dimensions)
        for word in words:
            total += self.word_weight * self._feature_vector(f"w:{word}")
        for gram in ngrams:
            total += self.ngram_weight * self._feature_vector(f"g:{gram}")

        norm = np.linalg.norm(total)
        if norm > 0:
            total /= norm
        return total.tolist()


class RandomEmbeddingProvider:
    """Uniform random vectors in [0, 1). Only useful as a placeholder."""

    def __init__(self, dimensions: int = 10, seed: int | None = None) -> None:
        self.dimensions = dimensions
        self._rng = np.random.default_rng(seed)

    async def embed(self, text: str) -> list[float]:
        return self._rng.random(self.dimensions).tolist()


class OpenAIEmbeddingProvider:
    """Embeddings from the OpenAI embeddings API."""

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        base_url: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize OpenAI embedding provider.

        Args:
            api_key: OpenAI API key.
            model: Embedding model name.
            base_url: Optional API base URL override.
            timeout: Request timeout in seconds.
        """
        self.model = model
        self._http_client = httpx.AsyncClient(
            timeout=timeout,
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
        )
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url, http_client=self._http_client)

    async def embed(self, text: str) -> list[float]:
        try:
            response = await self._client.embeddings.create(model=self.model, input=text)
        except APIError as e:
            raise EmbeddingError(f"OpenAI embedding request failed: {e}") from e
        except httpx.HTTPError as e:
            raise EmbeddingError(f"Embedding transport error: {e}") from e

        if not response.data:
            raise EmbeddingError("OpenAI returned no embedding data")
        return list(response.data[0].embedding)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._http_client.aclose()


def create_embedder(config: AIFamilyConfig, api_key: str = "") -> EmbeddingProvider:
    """Create the embedding provider selected in config.

    The OpenAI backend needs an OpenAI key; with any other key the hash
    provider is used instead.
    """
    settings = config.embedding

    if settings.backend == EmbeddingBackend.OPENAI:
        if detect_provider(api_key) == ProviderKind.OPENAI:
            return OpenAIEmbeddingProvider(api_key=api_key, model=settings.model)
        logger.warning("OpenAI embeddings need an OpenAI API key; falling back to hash embeddings")
        return HashEmbeddingProvider(dimensions=settings.dimensions)

    if settings.backend == EmbeddingBackend.RANDOM:
        return RandomEmbeddingProvider(dimensions=settings.dimensions)

    return HashEmbeddingProvider(dimensions=settings.dimensions)
