"""Contract tests for any RecordStore implementation."""

from abc import ABC, abstractmethod

import pytest

from localdink.domain.store import RecordStore, WriteConflictError


class RecordStoreContract(ABC):

    @abstractmethod
    def create_store(self) -> RecordStore:
        ...

    # -- create / get ----------------------------------------------------------

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self):
        store = self.create_store()
        assert await store.get("players", "nope") is None

    @pytest.mark.asyncio
    async def test_create_generates_id_and_starts_at_version_1(self):
        store = self.create_store()
        record = await store.create("players", {"firstName": "Alex"})
        assert record.id
        assert record.version == 1
        fetched = await store.get("players", record.id)
        assert fetched.data == {"firstName": "Alex"}

    @pytest.mark.asyncio
    async def test_create_with_explicit_id(self):
        store = self.create_store()
        record = await store.create("users", {"firstName": "Sam"}, "u1")
        assert record.id == "u1"
        assert (await store.get("users", "u1")).data["firstName"] == "Sam"

    @pytest.mark.asyncio
    async def test_create_existing_id_conflicts(self):
        store = self.create_store()
        await store.create("users", {"firstName": "Sam"}, "u1")
        with pytest.raises(WriteConflictError):
            await store.create("users", {"firstName": "Other"}, "u1")

    @pytest.mark.asyncio
    async def test_collections_are_independent(self):
        store = self.create_store()
        await store.create("users", {"firstName": "Sam"}, "x")
        assert await store.get("players", "x") is None

    # -- set / update ----------------------------------------------------------

    @pytest.mark.asyncio
    async def test_set_inserts_then_bumps_version(self):
        store = self.create_store()
        first = await store.set("conversations", "u1", {"messages": []})
        second = await store.set("conversations", "u1", {"messages": ["hi"]})
        assert first.version == 1
        assert second.version == 2
        assert (await store.get("conversations", "u1")).data == {"messages": ["hi"]}

    @pytest.mark.asyncio
    async def test_update_merges_fields(self):
        store = self.create_store()
        await store.create("players", {"firstName": "Alex", "lastName": "J"}, "p1")
        updated = await store.update("players", "p1", {"lastName": "Johnson"})
        assert updated.data == {"firstName": "Alex", "lastName": "Johnson"}
        assert updated.version == 2

    @pytest.mark.asyncio
    async def test_update_missing_raises_key_error(self):
        store = self.create_store()
        with pytest.raises(KeyError):
            await store.update("players", "nope", {"a": 1})

    # -- compare_and_set -------------------------------------------------------

    @pytest.mark.asyncio
    async def test_compare_and_set_with_current_version(self):
        store = self.create_store()
        created = await store.create("game-sessions", {"status": "open"}, "g1")
        written = await store.compare_and_set("game-sessions", "g1", {"status": "full"}, created.version)
        assert written.version == created.version + 1
        assert (await store.get("game-sessions", "g1")).data == {"status": "full"}

    @pytest.mark.asyncio
    async def test_compare_and_set_with_stale_version_conflicts(self):
        store = self.create_store()
        created = await store.create("game-sessions", {"status": "open"}, "g1")
        await store.compare_and_set("game-sessions", "g1", {"status": "full"}, created.version)
        with pytest.raises(WriteConflictError):
            await store.compare_and_set("game-sessions", "g1", {"status": "open"}, created.version)
        assert (await store.get("game-sessions", "g1")).data == {"status": "full"}

    @pytest.mark.asyncio
    async def test_compare_and_set_missing_raises_key_error(self):
        store = self.create_store()
        with pytest.raises(KeyError):
            await store.compare_and_set("game-sessions", "nope", {}, 1)

    # -- find ------------------------------------------------------------------

    @pytest.mark.asyncio
    async def test_find_returns_insertion_order(self):
        store = self.create_store()
        for name in ("a", "b", "c"):
            await store.create("courts", {"name": name})
        assert [r.data["name"] for r in await store.find("courts")] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_find_with_predicate(self):
        store = self.create_store()
        await store.create("players", {"ownerId": "u1", "firstName": "A"})
        await store.create("players", {"ownerId": "u2", "firstName": "B"})
        found = await store.find("players", lambda d: d.get("ownerId") == "u1")
        assert [r.data["firstName"] for r in found] == ["A"]

    @pytest.mark.asyncio
    async def test_returned_data_is_not_live(self):
        store = self.create_store()
        record = await store.create("players", {"tags": ["x"]}, "p1")
        record.data["tags"].append("y")
        assert (await store.get("players", "p1")).data == {"tags": ["x"]}
