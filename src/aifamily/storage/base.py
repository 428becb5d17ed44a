"""Store protocol for the durable key-value layer."""

from __future__ import annotations

from typing import Protocol


class Store(Protocol):
    """
    Protocol for durable string stores.

    Implementations raise StoreError when the underlying medium fails.
    Individual calls are atomic; there is no cross-key transaction.
    """

    def get(self, key: str) -> str | None:
        """Return the value stored under key, or None if absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        ...

    def remove(self, key: str) -> None:
        """Remove key. Removing an absent key is not an error."""
        ...
