"""Unit tests for the family member registry, raw log and vector stores."""

from __future__ import annotations

import json

import pytest

from aifamily.memory.log import MemoryLog
from aifamily.memory.models import FamilyMember, MemoryLogEntry, VectorStoreItem
from aifamily.memory.registry import FamilyMemberRegistry
from aifamily.memory.vector_store import VectorStoreCollection
from aifamily.storage import InMemoryStore, PersistenceLayer


@pytest.fixture
def persistence(store: InMemoryStore) -> PersistenceLayer:
    return PersistenceLayer(store)


@pytest.fixture
def vector_stores(persistence: PersistenceLayer) -> VectorStoreCollection:
    return VectorStoreCollection(persistence)


@pytest.fixture
def registry(persistence: PersistenceLayer, vector_stores: VectorStoreCollection) -> FamilyMemberRegistry:
    registry = FamilyMemberRegistry(persistence, vector_stores)
    registry.load()
    return registry


def _item(content: str, embedding: list[float] | None = None) -> VectorStoreItem:
    return VectorStoreItem(
        id=f"mem_{content}",
        content=content,
        timestamp="2024-01-01T00:00:00+00:00",
        source="user",
        embedding=embedding,
    )


class TestFamilyMemberRegistry:
    """Tests for FamilyMemberRegistry."""

    def test_bootstrap_default(self, registry: FamilyMemberRegistry, store: InMemoryStore) -> None:
        """Test an empty store yields exactly the default member, persisted."""
        assert registry.ids() == ["default"]

        persisted = json.loads(store.get("personas"))
        assert persisted[0]["id"] == "default"
        assert persisted[0]["description"] == "The default AI assistant for the family"
        assert "createdAt" in persisted[0]
        assert "lastAccessed" in persisted[0]

    def test_bootstrap_idempotent(
        self, registry: FamilyMemberRegistry, persistence: PersistenceLayer, vector_stores: VectorStoreCollection
    ) -> None:
        registry.load()
        assert registry.ids() == ["default"]

        reloaded = FamilyMemberRegistry(persistence, vector_stores)
        reloaded.load()
        assert reloaded.ids() == ["default"]

    def test_load_skips_malformed_records(self, persistence: PersistenceLayer, vector_stores: VectorStoreCollection) -> None:
        persistence.save(
            "personas",
            [
                {"id": "default", "name": "Family Assistant", "role": "Assistant"},
                {"name": "no id"},
            ],
        )

        registry = FamilyMemberRegistry(persistence, vector_stores)
        registry.load()

        assert registry.ids() == ["default"]
        member = registry.get("default")
        assert member.description == ""
        assert member.last_accessed == member.created_at

    def test_non_list_records_bootstrap_default(
        self, persistence: PersistenceLayer, vector_stores: VectorStoreCollection, store: InMemoryStore
    ) -> None:
        """Test a persisted non-list value is replaced by the default member."""
        store.set("personas", "5")

        registry = FamilyMemberRegistry(persistence, vector_stores)
        registry.load()

        assert registry.ids() == ["default"]
        assert json.loads(store.get("personas"))[0]["id"] == "default"

    def test_create(self, registry: FamilyMemberRegistry, store: InMemoryStore) -> None:
        member = registry.create(name="Lyra", role="Tutor", description="Homework help")

        assert member.id.startswith("member_")
        assert member.created_at == member.last_accessed
        assert registry.get(member.id) is member
        assert json.loads(store.get(f"vectorstore:{member.id}")) == []

    def test_list_returns_copy(self, registry: FamilyMemberRegistry) -> None:
        members = registry.list()
        members.clear()
        assert len(registry.list()) == 1

    def test_update(self, registry: FamilyMemberRegistry) -> None:
        member = registry.create(name="Lyra", role="Tutor")

        updated = registry.update(member.id, role="Coach", description=None)

        assert updated.role == "Coach"
        assert updated.description == ""
        assert updated.id == member.id

    def test_update_rejects_protected_fields(self, registry: FamilyMemberRegistry) -> None:
        with pytest.raises(ValueError, match="Cannot update"):
            registry.update("default", id="hijack")

        with pytest.raises(ValueError, match="Cannot update"):
            registry.update("default", created_at="1999-01-01")

    def test_update_unknown(self, registry: FamilyMemberRegistry) -> None:
        assert registry.update("member_missing", name="x") is None

    def test_delete_default_refused(self, registry: FamilyMemberRegistry) -> None:
        """Test the default member can never be deleted."""
        assert registry.delete("default") is False
        assert registry.ids() == ["default"]

    def test_delete_unknown(self, registry: FamilyMemberRegistry) -> None:
        assert registry.delete("member_missing") is False

    def test_delete_cascades_to_vector_store(
        self, registry: FamilyMemberRegistry, vector_stores: VectorStoreCollection, store: InMemoryStore
    ) -> None:
        member = registry.create(name="Lyra", role="Tutor")
        vector_stores.append(member.id, [_item("piano")])

        assert registry.delete(member.id) is True

        assert registry.get(member.id) is None
        assert vector_stores.items(member.id) == []
        assert store.get(f"vectorstore:{member.id}") is None
        assert [m["id"] for m in json.loads(store.get("personas"))] == ["default"]

    def test_touch(self, registry: FamilyMemberRegistry) -> None:
        member = registry.get("default")
        member.last_accessed = "2000-01-01T00:00:00+00:00"

        registry.touch("default")
        registry.touch("member_missing")

        assert member.last_accessed != "2000-01-01T00:00:00+00:00"


class TestFamilyMemberModel:
    """Tests for FamilyMember serialization."""

    def test_round_trip_keys(self) -> None:
        member = FamilyMember(id="m1", name="Max", role="Coach", created_at="a", last_accessed="b")
        data = member.to_dict()

        assert data == {
            "id": "m1",
            "name": "Max",
            "role": "Coach",
            "description": "",
            "createdAt": "a",
            "lastAccessed": "b",
        }
        assert FamilyMember.from_dict(data) == member


class TestMemoryLog:
    """Tests for MemoryLog."""

    def test_append_and_reload(self, persistence: PersistenceLayer) -> None:
        log = MemoryLog(persistence)
        log.append("alice", [MemoryLogEntry(role="user", content="hi", timestamp="t1")])
        log.append("alice", [MemoryLogEntry(role="assistant", content="hello", timestamp="t2")])

        reloaded = MemoryLog(persistence)
        assert [e.content for e in reloaded.entries("alice")] == ["hi", "hello"]
        assert reloaded.entries("bob") == []

    def test_entries_is_snapshot(self, persistence: PersistenceLayer) -> None:
        log = MemoryLog(persistence)
        log.append("alice", [MemoryLogEntry(role="user", content="hi", timestamp="t1")])

        log.entries("alice").clear()

        assert len(log.entries("alice")) == 1

    def test_clear(self, persistence: PersistenceLayer, store: InMemoryStore) -> None:
        log = MemoryLog(persistence)
        log.append("alice", [MemoryLogEntry(role="user", content="hi", timestamp="t1")])

        log.clear("alice")

        assert log.entries("alice") == []
        assert store.get("memlog:alice") is None

    def test_malformed_entries_skipped(self, persistence: PersistenceLayer) -> None:
        persistence.save("memlog:alice", [{"role": "user"}, {"role": "user", "content": "ok", "timestamp": "t"}])

        assert [e.content for e in MemoryLog(persistence).entries("alice")] == ["ok"]

    def test_non_list_log_is_empty(self, persistence: PersistenceLayer, store: InMemoryStore) -> None:
        store.set("memlog:alice", '"just a string"')
        log = MemoryLog(persistence)

        assert log.entries("alice") == []

        log.append("alice", [MemoryLogEntry(role="user", content="hi", timestamp="t1")])
        assert [e["content"] for e in json.loads(store.get("memlog:alice"))] == ["hi"]


class TestVectorStoreCollection:
    """Tests for VectorStoreCollection."""

    def test_get_or_create_unknown(self, vector_stores: VectorStoreCollection, store: InMemoryStore) -> None:
        """Test get_or_create initializes an empty store in memory only."""
        assert vector_stores.get_or_create("new") == []
        assert vector_stores.get_or_create("new") is vector_stores.get_or_create("new")
        assert store.get("vectorstore:new") is None

    def test_items_does_not_create(
        self, vector_stores: VectorStoreCollection, persistence: PersistenceLayer
    ) -> None:
        """Test a later-persisted store is still picked up after items()."""
        assert vector_stores.items("ghost") == []

        persistence.save("vectorstore:ghost", [_item("late").to_dict()])

        assert [i.content for i in vector_stores.get_or_create("ghost")] == ["late"]

    def test_append_persists(self, vector_stores: VectorStoreCollection, persistence: PersistenceLayer) -> None:
        vector_stores.append("default", [_item("a", [1.0, 0.0]), _item("b")])

        reloaded = VectorStoreCollection(persistence)
        reloaded.load(["default"])

        items = reloaded.items("default")
        assert [i.content for i in items] == ["a", "b"]
        assert items[0].embedding == [1.0, 0.0]
        assert items[1].embedding is None

    def test_lazy_load_from_durable_layer(
        self, vector_stores: VectorStoreCollection, persistence: PersistenceLayer
    ) -> None:
        persistence.save("vectorstore:late", [_item("x").to_dict()])

        assert [i.content for i in vector_stores.get_or_create("late")] == ["x"]

    def test_drop(self, vector_stores: VectorStoreCollection, store: InMemoryStore) -> None:
        vector_stores.append("m1", [_item("a")])

        vector_stores.drop("m1")

        assert store.get("vectorstore:m1") is None
        assert vector_stores.items("m1") == []

    def test_malformed_items_skipped(self, vector_stores: VectorStoreCollection, persistence: PersistenceLayer) -> None:
        persistence.save("vectorstore:m1", [{"content": "no id"}, _item("ok").to_dict()])

        vector_stores.load(["m1"])

        assert [i.content for i in vector_stores.items("m1")] == ["ok"]

    def test_non_list_store_is_empty(self, vector_stores: VectorStoreCollection, store: InMemoryStore) -> None:
        store.set("vectorstore:m1", '{"content": "not a list"}')

        vector_stores.load(["m1"])

        assert vector_stores.items("m1") == []
        vector_stores.append("m1", [_item("fresh")])
        assert [i.content for i in vector_stores.items("m1")] == ["fresh"]
