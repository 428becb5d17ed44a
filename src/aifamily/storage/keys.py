"""Key naming for persisted engine state.

These names are the on-disk layout and must stay stable across releases.
"""

from __future__ import annotations

PERSONAS_KEY = "personas"

_MEMLOG_PREFIX = "memlog:"
_VECTOR_STORE_PREFIX = "vectorstore:"


def memlog_key(user_id: str) -> str:
    return f"{_MEMLOG_PREFIX}{user_id}"


def vector_store_key(family_member_id: str) -> str:
    return f"{_VECTOR_STORE_PREFIX}{family_member_id}"
