"""Family member registry.

CRUD over the personas that scope memory operations. The registry always
contains a persona with id "default"; it is synthesized on first load and
can never be deleted.
"""

from __future__ import annotations

import logging

from aifamily.storage import PERSONAS_KEY, PersistenceLayer

from .models import DEFAULT_FAMILY_MEMBER_ID, FamilyMember, generate_id, now_iso
from .vector_store import VectorStoreCollection

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = ("name", "role", "description", "last_accessed")


def default_family_member() -> FamilyMember:
    return FamilyMember(
        id=DEFAULT_FAMILY_MEMBER_ID,
        name="Family Assistant",
        role="Assistant",
        description="The default AI assistant for the family",
    )


class FamilyMemberRegistry:
    """
    Persona records plus the cascade to their vector stores.

    Example:
        >>> registry = FamilyMemberRegistry(persistence, vector_stores)
        >>> registry.load()
        >>> tutor = registry.create(name="Lyra", role="Tutor")
        >>> registry.delete(tutor.id)
        True
    """

    def __init__(self, persistence: PersistenceLayer, vector_stores: VectorStoreCollection) -> None:
        self._persistence = persistence
        self._vector_stores = vector_stores
        self._members: list[FamilyMember] = []

    def load(self) -> None:
        """Load personas from the durable layer, bootstrapping the default one."""
        data = self._persistence.load(PERSONAS_KEY)
        if data is not None and not isinstance(data, list):
            logger.warning("Family member records are not a list, ignoring them")
            data = None

        members: list[FamilyMember] = []
        for raw in data or []:
            try:
                members.append(FamilyMember.from_dict(raw))
            except (KeyError, TypeError) as e:
                logger.warning(f"Skipping malformed family member record: {e}")

        self._members = members

        if not self._members:
            logger.info("No family members found, creating default family member")
            self._members = [default_family_member()]
            self._save()

    def _save(self) -> None:
        self._persistence.save(PERSONAS_KEY, [member.to_dict() for member in self._members])

    def _index(self, family_member_id: str) -> int:
        for index, member in enumerate(self._members):
            if member.id == family_member_id:
                return index
        return -1

    def list(self) -> list[FamilyMember]:
        """Return a copy of all family members."""
        return list(self._members)

    def ids(self) -> list[str]:
        return [member.id for member in self._members]

    def get(self, family_member_id: str) -> FamilyMember | None:
        index = self._index(family_member_id)
        return self._members[index] if index != -1 else None

    def create(self, name: str, role: str, description: str = "") -> FamilyMember:
        """Create a persona with a fresh id and an empty vector store."""
        timestamp = now_iso()
        member = FamilyMember(
            id=generate_id("member"),
            name=name,
            role=role,
            description=description,
            created_at=timestamp,
            last_accessed=timestamp,
        )

        self._members.append(member)
        self._save()

        self._vector_stores.create_empty(member.id)

        logger.info(f"Created family member {member.id} ({member.name})")
        return member

    def update(self, family_member_id: str, **updates: str) -> FamilyMember | None:
        """Merge updates into a persona. ``id`` and ``created_at`` cannot change.

        Returns:
            The updated member, or None if the id is unknown.

        Raises:
            ValueError: If an update names a field that cannot be changed.
        """
        index = self._index(family_member_id)
        if index == -1:
            return None

        invalid = set(updates) - set(_UPDATABLE_FIELDS)
        if invalid:
            raise ValueError(f"Cannot update family member fields: {sorted(invalid)}")

        member = self._members[index]
        for field_name, value in updates.items():
            if value is not None:
                setattr(member, field_name, value)

        self._save()
        return member

    def delete(self, family_member_id: str) -> bool:
        """Delete a persona and its vector store.

        Returns:
            False without any change for the default persona or an unknown id.
        """
        if family_member_id == DEFAULT_FAMILY_MEMBER_ID:
            return False

        index = self._index(family_member_id)
        if index == -1:
            return False

        del self._members[index]
        self._save()

        self._vector_stores.drop(family_member_id)

        logger.info(f"Deleted family member {family_member_id}")
        return True

    def touch(self, family_member_id: str) -> None:
        """Update last_accessed for a persona. Unknown ids are ignored."""
        member = self.get(family_member_id)
        if member is None:
            return
        member.last_accessed = now_iso()
        self._save()
