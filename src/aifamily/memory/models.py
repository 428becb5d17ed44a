"""Data model for the memory engine.

Persisted records serialize with camelCase keys so stores written by
earlier versions reload unchanged.
"""

from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Self

DEFAULT_FAMILY_MEMBER_ID = "default"
DEFAULT_USER_ID = "default_user"

VALID_ROLES = ("user", "assistant")


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def generate_id(prefix: str) -> str:
    """Generate an id like ``mem_1717171717171_k3j9x0a``."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=7))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


@dataclass
class Message:
    """A message handed to the engine for ingestion."""

    role: str
    content: str

    @classmethod
    def coerce(cls, value: Message | dict[str, Any]) -> Message:
        """Accept either a Message or a ``{role, content}`` mapping."""
        if isinstance(value, Message):
            return value
        return cls(role=str(value["role"]), content=str(value["content"]))


@dataclass
class FamilyMember:
    """A persona that scopes memory access and personalizes prompts.

    Attributes:
        id: Stable unique id. "default" is reserved and never deleted.
        name: Display name
        role: Display role
        description: Free-form description
        created_at: ISO timestamp, set once at creation
        last_accessed: ISO timestamp, updated on every add/search/generate
    """

    id: str
    name: str
    role: str
    description: str = ""
    created_at: str = field(default_factory=now_iso)
    last_accessed: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "description": self.description,
            "createdAt": self.created_at,
            "lastAccessed": self.last_accessed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        created_at = str(data.get("createdAt") or now_iso())
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            role=str(data.get("role", "")),
            description=str(data.get("description") or ""),
            created_at=created_at,
            last_accessed=str(data.get("lastAccessed") or created_at),
        )


@dataclass
class MemoryLogEntry:
    """One turn of raw conversation in a user's transcript."""

    role: str
    content: str
    timestamp: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(role=str(data["role"]), content=str(data["content"]), timestamp=str(data["timestamp"]))


@dataclass
class VectorStoreItem:
    """A semantically indexed memory belonging to one family member.

    ``embedding`` is None when embedding creation failed; such items are
    kept but skipped by vector search.
    """

    id: str
    content: str
    timestamp: str
    source: str
    type: str = "message"
    embedding: list[float] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "content": self.content,
            "metadata": {"timestamp": self.timestamp, "source": self.source, "type": self.type},
        }
        if self.embedding is not None:
            data["embedding"] = list(self.embedding)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        metadata = data.get("metadata") or {}
        embedding = data.get("embedding")
        return cls(
            id=str(data["id"]),
            content=str(data["content"]),
            timestamp=str(metadata.get("timestamp", "")),
            source=str(metadata.get("source", "")),
            type=str(metadata.get("type", "message")),
            embedding=[float(x) for x in embedding] if embedding is not None else None,
        )


@dataclass
class SearchResult:
    """A ranked memory. Produced per query, never persisted."""

    memory: str
    relevance: float
    timestamp: str

    def to_dict(self) -> dict[str, Any]:
        return {"memory": self.memory, "relevance": self.relevance, "timestamp": self.timestamp}


@dataclass
class SearchResponse:
    """Results of a search, ordered by descending relevance."""

    results: list[SearchResult] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.results)

    def to_dict(self) -> dict[str, Any]:
        return {"results": [r.to_dict() for r in self.results]}
