"""Protocol definitions for dependency injection into the memory engine.

These protocols define the interfaces that can be injected into Memory,
enabling loose coupling and easier testing.
"""

from __future__ import annotations

from typing import Protocol

from .providers import ConnectionState, LLMResponse, ProviderKind


class GenerationAdapterProtocol(Protocol):
    """
    Protocol for generation adapter implementations.

    A generation adapter owns provider detection, the model probe and
    the remembered working model.
    """

    async def test_connection(self) -> bool:
        """Find a working model; raise if none responds."""
        ...

    async def generate(self, prompt: str, system: str | None = None) -> LLMResponse:
        """Generate a response using the working or default model."""
        ...

    async def close(self) -> None:
        """Close the HTTP client and cleanup resources."""
        ...

    @property
    def provider(self) -> ProviderKind:
        """Get the detected provider."""
        ...

    @property
    def state(self) -> ConnectionState:
        """Get the connection state."""
        ...

    @property
    def working_model(self) -> str | None:
        """Get the model verified by test_connection, if any."""
        ...
