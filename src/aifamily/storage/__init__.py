"""Durable key-value layer for the memory engine."""

from aifamily.storage.base import Store
from aifamily.storage.keys import PERSONAS_KEY, memlog_key, vector_store_key
from aifamily.storage.persistence import PersistenceLayer
from aifamily.storage.stores import InMemoryStore, JsonFileStore, SqliteStore, create_store

__all__ = [
    "Store",
    "InMemoryStore",
    "JsonFileStore",
    "SqliteStore",
    "create_store",
    "PersistenceLayer",
    "PERSONAS_KEY",
    "memlog_key",
    "vector_store_key",
]
