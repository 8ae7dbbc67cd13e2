# src/tasksmith/tasks/task_store.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import secrets
import sqlite3
import string
from pathlib import Path
from typing import Any

from ..core.errors import StoreReadError, StoreWriteError
from .task_models import Record

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_letters + string.digits
_ID_LENGTH = 20

# Fields mirrored into real columns; everything else is filtered in Python.
_INDEXED_FIELDS = {"id": "id", "parentId": "parent_id"}


class SqliteRecordStore:
    """
    SQLite-backed document collection for task records.

    Each record is one row holding the JSON document plus a few columns
    mirrored out of it for filtering and ordering:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each call opens its own SQLite connection
    - async methods run the blocking call in a worker thread
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_records()
        except sqlite3.Error:
            total = -1
        logger.info("SqliteRecordStore ready db=%s total=%s", self._db_path, total)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS records (
                    id TEXT PRIMARY KEY,
                    parent_id TEXT,
                    created_time REAL,
                    doc TEXT NOT NULL DEFAULT '{}'
                )
                """
            )

            cur.execute("PRAGMA table_info(records)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE records ADD COLUMN {name} {decl}")
                logger.info("SqliteRecordStore migration: added column %s", name)

            add_col("parent_id", "TEXT")
            add_col("created_time", "REAL")
            add_col("doc", "TEXT NOT NULL DEFAULT '{}'")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_records_parent ON records(parent_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_records_created ON records(created_time)")
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _doc_to_str(doc: Record) -> str:
        return json.dumps(doc, ensure_ascii=False)

    @staticmethod
    def _str_to_doc(s: str | None) -> Record:
        if not s:
            return {}
        try:
            val = json.loads(s)
        except ValueError:
            logger.warning("Skipping undecodable record document")
            return {}
        return val if isinstance(val, dict) else {}

    def _row_to_record(self, row: sqlite3.Row) -> Record:
        doc = self._str_to_doc(row["doc"])
        doc["id"] = row["id"]
        return doc

    # ---- sync API ----

    def count_records(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM records").fetchone()
            return int(n)
        finally:
            conn.close()

    def list_records_sync(self) -> list[Record]:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "SELECT id, doc FROM records ORDER BY created_time DESC, rowid DESC"
            )
            return [self._row_to_record(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def query_sync(self, field: str, value: Any) -> list[Record]:
        column = _INDEXED_FIELDS.get(field)
        if column is not None:
            conn = self._get_conn()
            try:
                cur = conn.execute(
                    f"SELECT id, doc FROM records WHERE {column} = ? ORDER BY rowid ASC",
                    (value,),
                )
                return [self._row_to_record(r) for r in cur.fetchall()]
            finally:
                conn.close()

        return [r for r in self.list_records_sync() if r.get(field) == value]

    def get_sync(self, record_id: str) -> Record | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT id, doc FROM records WHERE id = ?", (record_id,)).fetchone()
            return self._row_to_record(row) if row else None
        finally:
            conn.close()

    def put_sync(self, record_id: str, record: Record, *, merge: bool = False) -> None:
        if not record_id:
            raise ValueError("record_id is required")

        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            doc: Record = {}
            if merge:
                row = conn.execute("SELECT doc FROM records WHERE id = ?", (record_id,)).fetchone()
                if row is not None:
                    doc = self._str_to_doc(row["doc"])
            doc.update(record)
            doc["id"] = record_id

            parent_id = doc.get("parentId") or None
            created = doc.get("createdTime")
            conn.execute(
                """
                INSERT INTO records(id, parent_id, created_time, doc)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    parent_id = excluded.parent_id,
                    created_time = excluded.created_time,
                    doc = excluded.doc
                """,
                (
                    record_id,
                    parent_id,
                    float(created) if isinstance(created, (int, float)) else None,
                    self._doc_to_str(doc),
                ),
            )
            conn.commit()
            logger.debug("Record put id=%s merge=%s parent=%s", record_id, merge, parent_id)
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def delete_sync(self, record_id: str) -> None:
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM records WHERE id = ?", (record_id,))
            conn.commit()
            logger.debug("Record delete id=%s removed=%s", record_id, cur.rowcount)
        finally:
            conn.close()

    # ---- RecordStore port ----

    def new_id(self) -> str:
        return "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_LENGTH))

    async def list_records(self) -> list[Record]:
        try:
            return await asyncio.to_thread(self.list_records_sync)
        except sqlite3.Error as e:
            raise StoreReadError(f"Failed to list records: {e}") from e

    async def query(self, field: str, value: Any) -> list[Record]:
        try:
            return await asyncio.to_thread(self.query_sync, field, value)
        except sqlite3.Error as e:
            raise StoreReadError(f"Failed to query records where {field} == {value!r}: {e}") from e

    async def get(self, record_id: str) -> Record | None:
        try:
            return await asyncio.to_thread(self.get_sync, record_id)
        except sqlite3.Error as e:
            raise StoreReadError(f"Failed to read record {record_id}: {e}") from e

    async def put(self, record_id: str, record: Record, *, merge: bool = False) -> None:
        try:
            await asyncio.to_thread(self.put_sync, record_id, record, merge=merge)
        except (sqlite3.Error, ValueError, TypeError) as e:
            raise StoreWriteError(f"Failed to write record {record_id}: {e}") from e

    async def delete(self, record_id: str) -> None:
        try:
            await asyncio.to_thread(self.delete_sync, record_id)
        except sqlite3.Error as e:
            raise StoreWriteError(f"Failed to delete record {record_id}: {e}") from e
