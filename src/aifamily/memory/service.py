"""Session-level wrapper around the memory engine.

MemoryService is what a front end talks to. It resolves the API key,
initializes the engine and verifies the connection, tracks the current
family member, and turns engine failures into caller-friendly results:
searches come back empty and generation returns a fixed apology instead
of raising.
"""

from __future__ import annotations

import logging

from aifamily.config import AIFamilyConfig
from aifamily.errors import ConfigurationError, ConnectionFailedError
from aifamily.storage import Store, create_store

from .embeddings import EmbeddingProvider, create_embedder
from .engine import Memory
from .models import DEFAULT_FAMILY_MEMBER_ID, FamilyMember, Message, SearchResponse

logger = logging.getLogger(__name__)

GENERATION_ERROR_REPLY = "I encountered an error while processing your request."
NOT_INITIALIZED_REPLY = "Memory system not initialized"


class MemoryService:
    """
    Front-end facing memory service.

    Example:
        >>> service = MemoryService(AIFamilyConfig.load())
        >>> await service.initialize()
        >>> await service.add_memory("I prefer morning meetings")
        >>> reply = await service.generate_with_memory("When should we meet?")
    """

    def __init__(
        self,
        config: AIFamilyConfig | None = None,
        api_key: str | None = None,
        store: Store | None = None,
        embedder: EmbeddingProvider | None = None,
        memory: Memory | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            config: Application configuration.
            api_key: API key; overrides the configured key.
            store: Durable store override. Defaults to the configured backend.
            embedder: Embedding provider override.
            memory: Pre-built engine, mainly for tests. Skips key resolution.
        """
        self._config = config or AIFamilyConfig()
        self._api_key = api_key
        self._store = store
        self._owns_store = False
        self._embedder = embedder

        self.memory: Memory | None = memory
        self.error: str | None = None
        self.current_family_member: FamilyMember | None = None
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def user_id(self) -> str:
        return self._config.default_user_id

    def _resolve_api_key(self) -> str:
        api_key = self._api_key or self._config.api_key
        if not api_key:
            raise ConfigurationError("API key not found. Please set it in your profile settings.")
        return api_key

    async def initialize(self, verify_connection: bool = True) -> None:
        """Build the engine, load stored state and verify the API key.

        Raises:
            ConfigurationError: If no API key is configured.
            UnknownProviderError: If the key format is not recognised.
            ConnectionFailedError: If no candidate model responds.
        """
        if self._initialized:
            return

        try:
            if self.memory is None:
                api_key = self._resolve_api_key()
                if self._store is None:
                    self._store = create_store(self._config)
                    self._owns_store = True
                self.memory = Memory(
                    api_key,
                    store=self._store,
                    embedder=self._embedder or create_embedder(self._config, api_key),
                    config=self._config,
                )

            if verify_connection:
                try:
                    await self.memory.test_connection()
                except ConnectionFailedError as e:
                    logger.error(f"Connection test failed: {e}")
                    raise ConnectionFailedError(
                        f"API connection failed: {e}. Please check your API key and model access.",
                        provider=e.provider,
                        last_error=e.last_error,
                    ) from e

            await self.memory.initialize()

            members = self.memory.get_family_members()
            if members:
                self.current_family_member = members[0]

            self._initialized = True
            self.error = None
        except Exception as e:
            logger.error(f"Failed to initialize memory system: {e}")
            self.error = str(e) or "Failed to initialize memory system"
            self._initialized = False
            raise

    def _scope(self, family_member_id: str | None) -> str:
        if family_member_id:
            return family_member_id
        if self.current_family_member is not None:
            return self.current_family_member.id
        return DEFAULT_FAMILY_MEMBER_ID

    def set_current_family_member(self, family_member_id: str) -> FamilyMember | None:
        """Switch the current family member. Unknown ids leave it unchanged."""
        if self.memory is None or not self._initialized:
            return None
        member = self.memory.get_family_member(family_member_id)
        if member is not None:
            self.current_family_member = member
        return member

    # ===== Memory operations =====

    async def add_memory(self, content: str, user_id: str | None = None, family_member_id: str | None = None) -> None:
        """Record a single user message."""
        if self.memory is None or not self._initialized:
            return

        try:
            await self.memory.add(
                [Message(role="user", content=content)],
                user_id or self.user_id,
                self._scope(family_member_id),
            )
        except Exception as e:
            logger.error(f"Failed to add memory: {e}")
            self.error = str(e) or "Failed to add memory"

    async def search_memories(
        self,
        query: str,
        user_id: str | None = None,
        limit: int | None = None,
        family_member_id: str | None = None,
    ) -> SearchResponse:
        """Search memories. Failures produce an empty response."""
        if self.memory is None or not self._initialized:
            return SearchResponse()

        try:
            return await self.memory.search(
                query,
                user_id or self.user_id,
                limit or self._config.relevance.default_limit,
                self._scope(family_member_id),
            )
        except Exception as e:
            logger.error(f"Failed to search memories: {e}")
            self.error = str(e) or "Failed to search memories"
            return SearchResponse()

    async def generate_with_memory(
        self,
        prompt: str,
        user_id: str | None = None,
        family_member_id: str | None = None,
    ) -> str:
        """Generate a reply. Failures produce a fixed apology string."""
        if self.memory is None or not self._initialized:
            return NOT_INITIALIZED_REPLY

        try:
            return await self.memory.generate_with_memory(prompt, user_id or self.user_id, self._scope(family_member_id))
        except Exception as e:
            logger.error(f"Failed to generate response: {e}")
            self.error = str(e) or "Failed to generate response"
            return GENERATION_ERROR_REPLY

    async def clear_memories(self, user_id: str | None = None, family_member_id: str | None = None) -> None:
        if self.memory is None or not self._initialized:
            return

        try:
            await self.memory.clear_memories(user_id or self.user_id, family_member_id)
        except Exception as e:
            logger.error(f"Failed to clear memories: {e}")
            self.error = str(e) or "Failed to clear memories"

    # ===== Family members =====

    @property
    def family_members(self) -> list[FamilyMember]:
        if self.memory is None or not self._initialized:
            return []
        return self.memory.get_family_members()

    def add_family_member(self, name: str, role: str, description: str = "") -> FamilyMember:
        """Create a family member.

        Raises:
            RuntimeError: If the service is not initialized.
        """
        if self.memory is None or not self._initialized:
            raise RuntimeError("Memory system not initialized")

        try:
            return self.memory.add_family_member(name=name, role=role, description=description)
        except Exception as e:
            logger.error(f"Failed to add family member: {e}")
            self.error = str(e) or "Failed to add family member"
            raise

    def update_family_member(self, family_member_id: str, **updates: str) -> FamilyMember | None:
        if self.memory is None or not self._initialized:
            return None

        try:
            updated = self.memory.update_family_member(family_member_id, **updates)
        except Exception as e:
            logger.error(f"Failed to update family member: {e}")
            self.error = str(e) or "Failed to update family member"
            return None

        if updated is not None and self.current_family_member is not None and self.current_family_member.id == family_member_id:
            self.current_family_member = updated

        return updated

    def delete_family_member(self, family_member_id: str) -> bool:
        if self.memory is None or not self._initialized:
            return False

        success = self.memory.delete_family_member(family_member_id)

        if success and self.current_family_member is not None and self.current_family_member.id == family_member_id:
            default_member = self.memory.get_family_member(DEFAULT_FAMILY_MEMBER_ID)
            if default_member is not None:
                self.current_family_member = default_member

        return success

    async def close(self) -> None:
        """Close the engine, and the store if this service opened it."""
        if self.memory is not None:
            await self.memory.close()

        close_store = getattr(self._store, "close", None)
        if self._owns_store and close_store is not None:
            close_store()
