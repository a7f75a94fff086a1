"""
In-memory RecordStore for tests and local development.

Every operation yields to the event loop once, so concurrent callers
interleave the way they would against a real database.
"""

import asyncio
import copy
import uuid
from typing import Callable

from localdink.domain.store import (
    Record,
    RecordStore,
    StoreUnavailableError,
    WriteConflictError,
)


class InMemoryRecordStore(RecordStore):

    def __init__(self):
        self._collections: dict[str, dict[str, Record]] = {}
        self.available = True

    async def _enter(self) -> None:
        await asyncio.sleep(0)
        if not self.available:
            raise StoreUnavailableError("in-memory store switched off")

    def _table(self, collection: str) -> dict[str, Record]:
        return self._collections.setdefault(collection, {})

    @staticmethod
    def _copy(record: Record) -> Record:
        return Record(record.id, copy.deepcopy(record.data), record.version)

    async def get(self, collection: str, record_id: str) -> Record | None:
        await self._enter()
        record = self._table(collection).get(record_id)
        return self._copy(record) if record else None

    async def create(self, collection: str, data: dict, record_id: str | None = None) -> Record:
        await self._enter()
        record_id = record_id or uuid.uuid4().hex
        table = self._table(collection)
        if record_id in table:
            raise WriteConflictError(f"{collection}/{record_id} already exists")
        table[record_id] = Record(record_id, copy.deepcopy(data), 1)
        return self._copy(table[record_id])

    async def set(self, collection: str, record_id: str, data: dict) -> Record:
        await self._enter()
        table = self._table(collection)
        version = table[record_id].version + 1 if record_id in table else 1
        table[record_id] = Record(record_id, copy.deepcopy(data), version)
        return self._copy(table[record_id])

    async def update(self, collection: str, record_id: str, fields: dict) -> Record:
        await self._enter()
        table = self._table(collection)
        if record_id not in table:
            raise KeyError(f"{collection}/{record_id}")
        current = table[record_id]
        table[record_id] = Record(
            record_id, {**current.data, **copy.deepcopy(fields)}, current.version + 1
        )
        return self._copy(table[record_id])

    async def compare_and_set(
        self, collection: str, record_id: str, data: dict, expected_version: int
    ) -> Record:
        await self._enter()
        table = self._table(collection)
        if record_id not in table:
            raise KeyError(f"{collection}/{record_id}")
        current = table[record_id]
        if current.version != expected_version:
            raise WriteConflictError(
                f"{collection}/{record_id}: expected v{expected_version}, found v{current.version}"
            )
        table[record_id] = Record(record_id, copy.deepcopy(data), current.version + 1)
        return self._copy(table[record_id])

    async def find(
        self, collection: str, predicate: Callable[[dict], bool] | None = None
    ) -> list[Record]:
        await self._enter()
        return [
            self._copy(r)
            for r in self._table(collection).values()
            if predicate is None or predicate(r.data)
        ]
