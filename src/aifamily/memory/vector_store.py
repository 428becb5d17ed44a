"""Per-family-member vector stores.

Each family member owns one list of VectorStoreItem. Stores are created
on first touch through get_or_create(): an unknown id is first looked up
in the durable layer, then initialized empty.
"""

from __future__ import annotations

import logging

from aifamily.storage import PersistenceLayer, vector_store_key

from .models import VectorStoreItem

logger = logging.getLogger(__name__)


class VectorStoreCollection:
    """All vector stores, keyed by family member id."""

    def __init__(self, persistence: PersistenceLayer) -> None:
        self._persistence = persistence
        self._stores: dict[str, list[VectorStoreItem]] = {}

    def _load(self, family_member_id: str) -> list[VectorStoreItem] | None:
        data = self._persistence.load(vector_store_key(family_member_id))
        if data is None:
            return None
        if not isinstance(data, list):
            logger.warning(f"Vector store for {family_member_id} is not a list, ignoring it")
            return []

        items: list[VectorStoreItem] = []
        for raw in data:
            try:
                items.append(VectorStoreItem.from_dict(raw))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed vector store item for {family_member_id}: {e}")
        return items

    def load(self, family_member_ids: list[str]) -> None:
        """Load stores for the given ids, creating empty ones where none is persisted."""
        for family_member_id in family_member_ids:
            self._stores[family_member_id] = self._load(family_member_id) or []
        logger.debug(f"Loaded vector stores for {len(family_member_ids)} family members")

    def get_or_create(self, family_member_id: str) -> list[VectorStoreItem]:
        """Return the store for family_member_id, creating it if needed."""
        store = self._stores.get(family_member_id)
        if store is None:
            store = self._load(family_member_id) or []
            self._stores[family_member_id] = store
        return store

    def items(self, family_member_id: str) -> list[VectorStoreItem]:
        """Snapshot of a store's items. Does not create the store."""
        if family_member_id not in self._stores:
            return list(self._load(family_member_id) or [])
        return list(self._stores[family_member_id])

    def create_empty(self, family_member_id: str) -> None:
        """Initialize and persist an empty store."""
        self._stores[family_member_id] = []
        self._persistence.save(vector_store_key(family_member_id), [])

    def append(self, family_member_id: str, items: list[VectorStoreItem]) -> None:
        """Append items and persist the store."""
        store = self.get_or_create(family_member_id)
        store.extend(items)
        self._persistence.save(vector_store_key(family_member_id), [item.to_dict() for item in store])

    def drop(self, family_member_id: str) -> None:
        """Delete a store from memory and from the durable layer."""
        self._stores.pop(family_member_id, None)
        self._persistence.remove(vector_store_key(family_member_id))
