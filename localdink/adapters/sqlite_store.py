"""
SQLite adapter for RecordStore.

Documents are stored as JSON text next to an integer version column.
compare_and_set is a single UPDATE guarded by the version, so it stays
atomic even with several processes on the same file.

Use ":memory:" for tests, a file path for production.
"""

import json
import sqlite3
import uuid
from typing import Callable

from localdink.domain.store import (
    Record,
    RecordStore,
    StoreUnavailableError,
    WriteConflictError,
)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS records (
    seq         INTEGER PRIMARY KEY AUTOINCREMENT,
    collection  TEXT NOT NULL,
    id          TEXT NOT NULL,
    data        TEXT NOT NULL,
    version     INTEGER NOT NULL DEFAULT 1,
    UNIQUE (collection, id)
);
"""


class SqliteRecordStore(RecordStore):

    def __init__(self, db_path: str = "localdink.db"):
        try:
            self._conn = sqlite3.connect(db_path)
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as exc:
            raise StoreUnavailableError(str(exc)) from exc

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            with self._conn:
                return self._conn.execute(sql, params)
        except sqlite3.IntegrityError:
            raise
        except sqlite3.Error as exc:
            raise StoreUnavailableError(str(exc)) from exc

    def _fetch(self, collection: str, record_id: str) -> Record | None:
        row = self._execute(
            "SELECT id, data, version FROM records WHERE collection = ? AND id = ?",
            (collection, record_id),
        ).fetchone()
        if row is None:
            return None
        return Record(row["id"], json.loads(row["data"]), row["version"])

    async def get(self, collection: str, record_id: str) -> Record | None:
        return self._fetch(collection, record_id)

    async def create(self, collection: str, data: dict, record_id: str | None = None) -> Record:
        record_id = record_id or uuid.uuid4().hex
        try:
            self._execute(
                "INSERT INTO records (collection, id, data, version) VALUES (?, ?, ?, 1)",
                (collection, record_id, json.dumps(data)),
            )
        except sqlite3.IntegrityError as exc:
            raise WriteConflictError(f"{collection}/{record_id} already exists") from exc
        return self._fetch(collection, record_id)

    async def set(self, collection: str, record_id: str, data: dict) -> Record:
        self._execute(
            """
            INSERT INTO records (collection, id, data, version) VALUES (?, ?, ?, 1)
            ON CONFLICT (collection, id)
            DO UPDATE SET data = excluded.data, version = records.version + 1
            """,
            (collection, record_id, json.dumps(data)),
        )
        return self._fetch(collection, record_id)

    async def update(self, collection: str, record_id: str, fields: dict) -> Record:
        current = self._fetch(collection, record_id)
        if current is None:
            raise KeyError(f"{collection}/{record_id}")
        merged = {**current.data, **fields}
        self._execute(
            "UPDATE records SET data = ?, version = version + 1 WHERE collection = ? AND id = ?",
            (json.dumps(merged), collection, record_id),
        )
        return self._fetch(collection, record_id)

    async def compare_and_set(
        self, collection: str, record_id: str, data: dict, expected_version: int
    ) -> Record:
        cursor = self._execute(
            """
            UPDATE records SET data = ?, version = version + 1
            WHERE collection = ? AND id = ? AND version = ?
            """,
            (json.dumps(data), collection, record_id, expected_version),
        )
        if cursor.rowcount == 1:
            return Record(record_id, data, expected_version + 1)
        if self._fetch(collection, record_id) is None:
            raise KeyError(f"{collection}/{record_id}")
        raise WriteConflictError(f"{collection}/{record_id}: version moved past v{expected_version}")

    async def find(
        self, collection: str, predicate: Callable[[dict], bool] | None = None
    ) -> list[Record]:
        rows = self._execute(
            "SELECT id, data, version FROM records WHERE collection = ? ORDER BY seq",
            (collection,),
        ).fetchall()
        records = [Record(r["id"], json.loads(r["data"]), r["version"]) for r in rows]
        if predicate is None:
            return records
        return [r for r in records if predicate(r.data)]
