"""Exception hierarchy for the aifamily memory engine.

Configuration and connectivity errors are fatal and propagate to the caller.
Embedding and storage errors are recoverable: the engine logs them and keeps
serving from in-memory state.
"""

from __future__ import annotations


class AIFamilyError(Exception):
    """Base class for all aifamily errors."""


class ConfigurationError(AIFamilyError):
    """Missing or invalid configuration, such as an absent API key."""


class UnknownProviderError(ConfigurationError):
    """The API key does not match any supported provider format."""

    def __init__(self, message: str = "Unknown API key format. Please check your API key.") -> None:
        super().__init__(message)


class ConnectionFailedError(AIFamilyError):
    """Every candidate model for the detected provider failed to respond."""

    def __init__(self, message: str, provider: str | None = None, last_error: BaseException | None = None) -> None:
        super().__init__(message)
        self.provider = provider
        self.last_error = last_error


class GenerationError(AIFamilyError):
    """The generation backend failed to produce a response."""


class EmbeddingError(AIFamilyError):
    """The embedding provider failed to embed a piece of text."""


class StoreError(AIFamilyError):
    """A durable store backend failed to read or write a key."""
