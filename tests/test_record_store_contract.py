"""
RecordStore contract tests: in-memory and SQLite (:memory:).
"""

import pytest

from localdink.adapters.memory_store import InMemoryRecordStore
from localdink.adapters.sqlite_store import SqliteRecordStore
from localdink.domain.store import StoreUnavailableError
from tests.contracts.record_store_contract import RecordStoreContract


class TestInMemoryRecordStore(RecordStoreContract):

    def create_store(self):
        return InMemoryRecordStore()

    @pytest.mark.asyncio
    async def test_switched_off_store_is_unavailable(self):
        store = self.create_store()
        store.available = False
        with pytest.raises(StoreUnavailableError):
            await store.get("players", "p1")


class TestSqliteRecordStore(RecordStoreContract):

    def create_store(self):
        return SqliteRecordStore(":memory:")

    def test_unopenable_path_is_unavailable(self, tmp_path):
        with pytest.raises(StoreUnavailableError):
            SqliteRecordStore(str(tmp_path / "missing-dir" / "db.sqlite"))
