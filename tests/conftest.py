"""Shared pytest fixtures for aifamily tests."""

from __future__ import annotations

from pathlib import Path
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest

from aifamily.brain.providers import GenerationAdapter, GenerationBackend, LLMResponse
from aifamily.config import AIFamilyConfig, StorageConfig
from aifamily.errors import EmbeddingError
from aifamily.memory.engine import Memory
from aifamily.storage import InMemoryStore


class FakeEmbedder:
    """Deterministic embedder: returns preset vectors per text.

    Unknown texts get ``default`` (a zero vector unless overridden), which
    never matches anything by cosine similarity.
    """

    def __init__(
        self,
        vectors: dict[str, list[float]] | None = None,
        default: list[float] | None = None,
        fail_on: set[str] | None = None,
    ) -> None:
        self.vectors = dict(vectors or {})
        self.default = default if default is not None else [0.0, 0.0, 0.0]
        self.fail_on = set(fail_on or set())
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if text in self.fail_on:
            raise EmbeddingError(f"cannot embed {text!r}")
        return list(self.vectors.get(text, self.default))


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Create a temporary directory for test data."""
    return tmp_path


@pytest.fixture
def mock_config(temp_dir: Path) -> AIFamilyConfig:
    """Return test configuration with temporary data directory."""
    config = AIFamilyConfig(
        name="TestFamily",
        version="1.0.0-test",
        data_dir=str(temp_dir / "data"),
        log_level="DEBUG",
        api_key="sk-test-key",
        storage=StorageConfig(backend="memory"),
    )

    Path(config.data_dir).mkdir(parents=True, exist_ok=True)

    return config


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def mock_backend() -> MagicMock:
    """Return a mock generation backend that always answers."""
    backend = MagicMock(spec=GenerationBackend)
    backend.generate = AsyncMock(
        return_value=LLMResponse(content="This is a test response.", model="gpt-4o-mini", provider="openai")
    )
    backend.close = AsyncMock()
    return backend


@pytest.fixture
def generator(mock_backend: MagicMock) -> GenerationAdapter:
    return GenerationAdapter("sk-test-key", backend=mock_backend)


@pytest.fixture
async def memory(
    store: InMemoryStore,
    embedder: FakeEmbedder,
    generator: GenerationAdapter,
    mock_config: AIFamilyConfig,
) -> AsyncGenerator[Memory, None]:
    """Yield an initialized Memory over an in-memory store."""
    engine = Memory("sk-test-key", store=store, embedder=embedder, generator=generator, config=mock_config)
    await engine.initialize()
    yield engine
    await engine.close()


@pytest.fixture
def mock_chat_response() -> MagicMock:
    """Return a mock chat completion response."""
    mock_response = MagicMock()
    mock_response.choices = [MagicMock()]
    mock_response.choices[0].message.content = "Test response"
    mock_response.choices[0].finish_reason = "stop"
    mock_response.usage.total_tokens = 30
    return mock_response
