"""The memory engine.

Memory ties the registry, raw log, vector stores, embedding provider and
generation adapter together behind the public operations used by the UI
layer: add, search, generate_with_memory, clear_memories and family
member CRUD.

Every operation is scoped to a (user_id, family_member_id) pair. The raw
log is keyed by user; vector stores are keyed by family member.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from aifamily.brain.protocols import GenerationAdapterProtocol
from aifamily.brain.providers import ConnectionState, GenerationAdapter, ProviderKind
from aifamily.config import AIFamilyConfig
from aifamily.storage import InMemoryStore, PersistenceLayer, Store

from .embeddings import EmbeddingProvider, create_embedder
from .log import MemoryLog
from .models import (
    DEFAULT_FAMILY_MEMBER_ID,
    DEFAULT_USER_ID,
    VALID_ROLES,
    FamilyMember,
    MemoryLogEntry,
    Message,
    SearchResponse,
    SearchResult,
    VectorStoreItem,
    generate_id,
    now_iso,
)
from .registry import FamilyMemberRegistry
from .relevance import cosine_similarity, keyword_relevance, rank
from .vector_store import VectorStoreCollection

logger = logging.getLogger(__name__)

SYSTEM_PROMPT_TEMPLATE = """You are {name}, a helpful {role} for the AI Family Toolkit.
You have access to the user's memories and file interactions.

User Memories:
{memories}

Use these memories when relevant to provide personalized responses.
Always be helpful, concise, and focus on file management tasks.
If the user asks about files or folders they've interacted with before, reference those specific items.
Remember to stay in character as {name} with the role of {role}."""

NO_MEMORIES = "No relevant memories found."


def format_timestamp(timestamp: str) -> str:
    """Human readable local time for an ISO timestamp."""
    try:
        return datetime.fromisoformat(timestamp).astimezone().strftime("%Y-%m-%d %H:%M:%S")
    except ValueError:
        return timestamp


class Memory:
    """Per-family-member memory with memory-augmented generation.

    The constructor does not touch durable storage; call initialize()
    first. The generation provider is detected from the API key at
    construction but nothing is sent over the network until
    test_connection() or generate_with_memory().

    Example:
        >>> memory = Memory("sk-...", store=SqliteStore("memory.db"))
        >>> await memory.initialize()
        >>> await memory.test_connection()
        >>> await memory.add([{"role": "user", "content": "My favorite color is blue"}])
        >>> await memory.generate_with_memory("What's my favorite color?")
    """

    def __init__(
        self,
        api_key: str = "",
        *,
        store: Store | None = None,
        embedder: EmbeddingProvider | None = None,
        generator: GenerationAdapterProtocol | None = None,
        config: AIFamilyConfig | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            api_key: LLM provider API key; its format selects the provider.
            store: Durable store. Defaults to an in-memory store.
            embedder: Embedding provider. Defaults to the backend selected in config.
            generator: Generation adapter override, mainly for tests.
            config: Settings for relevance thresholds and generation.
        """
        self._config = config or AIFamilyConfig()
        self._relevance = self._config.relevance

        self._persistence = PersistenceLayer(store if store is not None else InMemoryStore())
        self._embedder = embedder or create_embedder(self._config, api_key)
        self._generator = generator or GenerationAdapter(api_key, config=self._config.generation)

        self._log = MemoryLog(self._persistence)
        self._vector_stores = VectorStoreCollection(self._persistence)
        self._registry = FamilyMemberRegistry(self._persistence, self._vector_stores)

        self._initialized = False

    async def initialize(self) -> None:
        """Load family members and their vector stores from the durable layer.

        Safe to call more than once.
        """
        if self._initialized:
            return

        self._registry.load()
        self._vector_stores.load(self._registry.ids())

        self._initialized = True
        logger.info(f"Memory initialized with {len(self._registry.list())} family members")

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("Memory not initialized. Call initialize() first.")

    # ===== Generation provider =====

    async def test_connection(self) -> bool:
        """Verify the API key by probing the provider's candidate models.

        Raises:
            UnknownProviderError: If the key format is not recognised.
            ConnectionFailedError: If no candidate model responds.
        """
        return await self._generator.test_connection()

    @property
    def provider(self) -> ProviderKind:
        return self._generator.provider

    @property
    def connection_state(self) -> ConnectionState:
        return self._generator.state

    @property
    def working_model(self) -> str | None:
        return self._generator.working_model

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # ===== Ingestion =====

    async def add(
        self,
        messages: Iterable[Message | dict[str, Any]],
        user_id: str = DEFAULT_USER_ID,
        family_member_id: str = DEFAULT_FAMILY_MEMBER_ID,
        *,
        timestamp: str | None = None,
    ) -> None:
        """Record messages in the user's raw log and the family member's vector store.

        All messages share one timestamp: the given one, or the current
        time. An embedding failure leaves the affected item without an
        embedding and does not abort ingestion.

        Raises:
            ValueError: If a message role is not "user" or "assistant".
        """
        self._require_initialized()

        batch = [Message.coerce(m) for m in messages]
        for message in batch:
            if message.role not in VALID_ROLES:
                raise ValueError(f"Invalid role: {message.role!r}. Must be 'user' or 'assistant'.")

        timestamp = timestamp or now_iso()
        self._log.append(
            user_id,
            [MemoryLogEntry(role=m.role, content=m.content, timestamp=timestamp) for m in batch],
        )

        await self._add_to_vector_store(batch, family_member_id, timestamp)

        self._registry.touch(family_member_id)

    async def _add_to_vector_store(self, messages: list[Message], family_member_id: str, timestamp: str) -> None:
        items: list[VectorStoreItem] = []
        for message in messages:
            item = VectorStoreItem(
                id=generate_id("mem"),
                content=message.content,
                timestamp=timestamp,
                source=message.role,
            )
            item.embedding = await self._embed(message.content)
            items.append(item)

        self._vector_stores.append(family_member_id, items)

    async def _embed(self, text: str) -> list[float] | None:
        # Embedders are pluggable, so any failure is treated as a missing embedding
        try:
            return await self._embedder.embed(text)
        except Exception as e:
            logger.error(f"Failed to create embedding: {e}")
            return None

    # ===== Search =====

    async def search(
        self,
        query: str,
        user_id: str = DEFAULT_USER_ID,
        limit: int = 5,
        family_member_id: str = DEFAULT_FAMILY_MEMBER_ID,
    ) -> SearchResponse:
        """Find memories relevant to query.

        Vector similarity over the family member's store is tried first;
        if it yields nothing, keyword relevance over the user's raw log is
        used instead.
        """
        self._require_initialized()

        self._registry.touch(family_member_id)

        vector_results = await self._search_vector_store(query, family_member_id, limit)
        if vector_results.results:
            return vector_results

        return self._search_log(query, user_id, limit)

    async def _search_vector_store(self, query: str, family_member_id: str, limit: int) -> SearchResponse:
        items = self._vector_stores.items(family_member_id)
        if not items:
            return SearchResponse()

        query_embedding = await self._embed(query)
        if query_embedding is None:
            return SearchResponse()

        scored = (
            (cosine_similarity(query_embedding, item.embedding), item)
            for item in items
            if item.embedding is not None
        )
        ranked = rank(scored, self._relevance.similarity_threshold, limit)

        return SearchResponse(
            results=[SearchResult(memory=item.content, relevance=score, timestamp=item.timestamp) for score, item in ranked]
        )

    def _search_log(self, query: str, user_id: str, limit: int) -> SearchResponse:
        entries = self._log.entries(user_id)
        if not entries:
            return SearchResponse()

        scored = ((keyword_relevance(query, entry.content, self._relevance), entry) for entry in entries)
        ranked = rank(scored, self._relevance.keyword_threshold, limit)

        return SearchResponse(
            results=[SearchResult(memory=entry.content, relevance=score, timestamp=entry.timestamp) for score, entry in ranked]
        )

    # ===== Generation =====

    def build_system_prompt(self, member: FamilyMember | None, results: list[SearchResult]) -> str:
        """Compose the system prompt from persona identity and retrieved memories."""
        name = member.name if member and member.name else "AI Assistant"
        role = member.role if member and member.role else "Assistant"

        memories = "\n".join(f"- {r.memory} ({format_timestamp(r.timestamp)})" for r in results)

        return SYSTEM_PROMPT_TEMPLATE.format(name=name, role=role, memories=memories or NO_MEMORIES)

    async def generate_with_memory(
        self,
        prompt: str,
        user_id: str = DEFAULT_USER_ID,
        family_member_id: str = DEFAULT_FAMILY_MEMBER_ID,
    ) -> str:
        """Answer prompt in character, grounded in relevant memories.

        The prompt and the reply are recorded as a new exchange.

        Raises:
            UnknownProviderError: If the key format is not recognised.
            GenerationError: If the generation backend fails.
        """
        self._require_initialized()

        member = self._registry.get(family_member_id)
        relevant = await self.search(prompt, user_id, self._relevance.default_limit, family_member_id)
        system_prompt = self.build_system_prompt(member, relevant.results)

        try:
            response = await self._generator.generate(prompt, system=system_prompt)
        except Exception as e:
            logger.error(f"Error generating response with memory: {e}")
            raise

        await self.add(
            [
                Message(role="user", content=prompt),
                Message(role="assistant", content=response.content),
            ],
            user_id,
            family_member_id,
        )

        return response.content

    # ===== Clearing =====

    async def clear_memories(self, user_id: str = DEFAULT_USER_ID, family_member_id: str | None = None) -> None:
        """Clear the user's raw log and vector stores.

        With family_member_id only that store is cleared; without it, the
        store of every known family member is cleared.
        """
        self._require_initialized()

        self._log.clear(user_id)

        if family_member_id:
            self._vector_stores.drop(family_member_id)
        else:
            for member_id in self._registry.ids():
                self._vector_stores.drop(member_id)

        logger.info(f"Cleared memories for user {user_id} (family member: {family_member_id or 'all'})")

    def get_memories(self, user_id: str = DEFAULT_USER_ID) -> list[MemoryLogEntry]:
        """Raw log entries for user_id in insertion order."""
        self._require_initialized()
        return self._log.entries(user_id)

    # ===== Family members =====

    def get_family_members(self) -> list[FamilyMember]:
        self._require_initialized()
        return self._registry.list()

    def get_family_member(self, family_member_id: str) -> FamilyMember | None:
        self._require_initialized()
        return self._registry.get(family_member_id)

    def add_family_member(self, name: str, role: str, description: str = "") -> FamilyMember:
        self._require_initialized()
        return self._registry.create(name=name, role=role, description=description)

    def update_family_member(self, family_member_id: str, **updates: str) -> FamilyMember | None:
        self._require_initialized()
        return self._registry.update(family_member_id, **updates)

    def delete_family_member(self, family_member_id: str) -> bool:
        self._require_initialized()
        return self._registry.delete(family_member_id)

    # ===== Lifecycle =====

    async def close(self) -> None:
        """Close the generation adapter and the embedder if it holds a client."""
        await self._generator.close()
        close_embedder = getattr(self._embedder, "close", None)
        if close_embedder is not None:
            await close_embedder()

    async def __aenter__(self) -> Memory:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
