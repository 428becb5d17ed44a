"""aifamily brain module.

Contains provider detection and the generation adapter used by the
memory engine.
"""

from aifamily.brain.protocols import GenerationAdapterProtocol
from aifamily.brain.providers import (
    ConnectionState,
    GenerationAdapter,
    GenerationBackend,
    LLMResponse,
    OpenAICompatibleBackend,
    ProviderKind,
    ProviderSpec,
    detect_provider,
    provider_specs,
)

__all__ = [
    # Provider detection
    "ProviderKind",
    "ProviderSpec",
    "detect_provider",
    "provider_specs",
    # Generation
    "ConnectionState",
    "GenerationAdapter",
    "GenerationBackend",
    "OpenAICompatibleBackend",
    "LLMResponse",
    # Protocols for DI
    "GenerationAdapterProtocol",
]
