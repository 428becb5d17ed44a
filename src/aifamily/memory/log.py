"""Raw memory log: an append-only transcript per user.

The log is the corpus for keyword fallback search. Entries are never
mutated; a user's log is only appended to or cleared as a whole.
"""

from __future__ import annotations

import logging

from aifamily.storage import PersistenceLayer, memlog_key

from .models import MemoryLogEntry

logger = logging.getLogger(__name__)


class MemoryLog:
    """Per-user transcripts, loaded lazily from the durable layer."""

    def __init__(self, persistence: PersistenceLayer) -> None:
        self._persistence = persistence
        self._logs: dict[str, list[MemoryLogEntry]] = {}

    def _get(self, user_id: str) -> list[MemoryLogEntry]:
        log = self._logs.get(user_id)
        if log is not None:
            return log

        log = []
        data = self._persistence.load(memlog_key(user_id))
        if data is not None and not isinstance(data, list):
            logger.warning(f"Memory log for {user_id} is not a list, ignoring it")
            data = None

        for raw in data or []:
            try:
                log.append(MemoryLogEntry.from_dict(raw))
            except (KeyError, TypeError) as e:
                logger.warning(f"Skipping malformed log entry for {user_id}: {e}")

        self._logs[user_id] = log
        return log

    def entries(self, user_id: str) -> list[MemoryLogEntry]:
        """Entries for user_id in insertion order."""
        return list(self._get(user_id))

    def append(self, user_id: str, entries: list[MemoryLogEntry]) -> None:
        """Append entries and persist the user's log."""
        log = self._get(user_id)
        log.extend(entries)
        self._persistence.save(memlog_key(user_id), [entry.to_dict() for entry in log])

    def clear(self, user_id: str) -> None:
        """Drop every entry for user_id."""
        self._logs.pop(user_id, None)
        self._persistence.remove(memlog_key(user_id))
