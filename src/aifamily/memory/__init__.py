"""aifamily memory system - per-family-member memory engine.

This package provides the memory engine and its parts:

1. **FamilyMemberRegistry:** personas that scope every memory operation
2. **MemoryLog:** append-only per-user transcripts for keyword search
3. **VectorStoreCollection:** per-persona embedded memories for semantic search
4. **Memory:** the engine tying them to embedding and generation providers
5. **MemoryService:** the session-level wrapper used by front ends

Example:
    >>> from aifamily.config import AIFamilyConfig
    >>> from aifamily.memory import MemoryService
    >>>
    >>> service = MemoryService(AIFamilyConfig.load())
    >>> await service.initialize()
    >>> await service.add_memory("My favorite color is blue")
    >>> await service.search_memories("favorite color")
"""

from __future__ import annotations

from aifamily.memory.embeddings import (
    EmbeddingProvider,
    HashEmbeddingProvider,
    OpenAIEmbeddingProvider,
    RandomEmbeddingProvider,
    create_embedder,
)
from aifamily.memory.engine import Memory
from aifamily.memory.log import MemoryLog
from aifamily.memory.models import (
    FamilyMember,
    MemoryLogEntry,
    Message,
    SearchResponse,
    SearchResult,
    VectorStoreItem,
)
from aifamily.memory.registry import FamilyMemberRegistry
from aifamily.memory.service import MemoryService
from aifamily.memory.transfer import ImportReport, export_memories, import_memories, validate_import_data
from aifamily.memory.vector_store import VectorStoreCollection

__all__ = [
    "Memory",
    "MemoryService",
    "FamilyMemberRegistry",
    "MemoryLog",
    "VectorStoreCollection",
    "EmbeddingProvider",
    "HashEmbeddingProvider",
    "RandomEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "create_embedder",
    "FamilyMember",
    "MemoryLogEntry",
    "Message",
    "SearchResponse",
    "SearchResult",
    "VectorStoreItem",
    "ImportReport",
    "export_memories",
    "import_memories",
    "validate_import_data",
]
