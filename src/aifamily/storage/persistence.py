"""JSON persistence over a Store.

Storage faults are logged and swallowed here so the engine keeps serving
from in-memory state; nothing written after a fault survives a restart.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from aifamily.errors import StoreError

from .base import Store

logger = logging.getLogger(__name__)


class PersistenceLayer:
    """Save and load JSON-serializable values under string keys."""

    def __init__(self, store: Store) -> None:
        self._store = store

    def save(self, key: str, value: Any) -> bool:
        """Serialize and store value. Returns False if the write failed."""
        try:
            self._store.set(key, json.dumps(value))
            return True
        except (StoreError, TypeError, ValueError) as e:
            logger.warning(f"Could not save {key!r} to store: {e}")
            return False

    def load(self, key: str) -> Any | None:
        """Load and deserialize the value under key, or None if absent or unreadable."""
        try:
            raw = self._store.get(key)
        except StoreError as e:
            logger.warning(f"Could not load {key!r} from store: {e}")
            return None

        if raw is None:
            return None

        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Discarding corrupt value for {key!r}: {e}")
            return None

    def remove(self, key: str) -> bool:
        """Remove key. Returns False if the removal failed."""
        try:
            self._store.remove(key)
            return True
        except StoreError as e:
            logger.warning(f"Could not remove {key!r} from store: {e}")
            return False
