# src/taskflow/storage/sqlite.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import sqlite3
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..core.ports import (
    DocumentSnapshot,
    ErrorCallback,
    Record,
    SnapshotCallback,
    Unsubscribe,
)

logger = logging.getLogger(__name__)

# Record key -> column declaration. Every column has a default so merge-writes
# can create a row from a partial record.
_COLUMNS: dict[str, str] = {
    "user_id": "TEXT NOT NULL DEFAULT ''",
    "title": "TEXT NOT NULL DEFAULT ''",
    "description": "TEXT NOT NULL DEFAULT ''",
    "due_date": "REAL NOT NULL DEFAULT 0",
    "priority": "TEXT NOT NULL DEFAULT 'medium'",
    "completed": "INTEGER NOT NULL DEFAULT 0",
    "created_at": "REAL NOT NULL DEFAULT 0",
}


@dataclass(slots=True)
class _Watcher:
    owner_id: str
    on_change: SnapshotCallback
    on_error: ErrorCallback
    wake: asyncio.Event = field(default_factory=asyncio.Event)
    task: asyncio.Task[None] | None = None


class SqliteDocumentStore:
    """
    SQLite-backed DocumentStore.

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection; the async API runs them in worker threads

    Live queries:
    - one polling watcher per listener; it re-reads the owner's rows every
      poll_interval_seconds and delivers them when they changed
    - writes made through this instance wake the owner's watchers immediately
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3", *, poll_interval_seconds: float = 2.0) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._poll_s = max(0.05, float(poll_interval_seconds))
        self._watchers: dict[int, _Watcher] = {}
        # Cancelled watcher tasks that have not finished yet (close() awaits them).
        self._retired: set[asyncio.Task[None]] = set()
        self._next_watcher_id = 1
        self._ensure_schema()
        try:
            total = self.count_documents()
        except Exception:
            total = -1
        logger.info("SqliteDocumentStore ready db=%s total=%s", self._db_path, total)

    async def close(self) -> None:
        """Stop all watchers (connections are short-lived; nothing else to close)."""
        tasks = [w.task for w in self._watchers.values() if w.task is not None]
        tasks.extend(self._retired)
        self._watchers.clear()
        self._retired.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

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
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    updated_at REAL NOT NULL DEFAULT 0
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            for name, decl in {"updated_at": "REAL NOT NULL DEFAULT 0", **_COLUMNS}.items():
                if name in cols:
                    continue
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("SqliteDocumentStore migration: added column %s", name)

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_user ON tasks(user_id)")
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> Record:
        record: Record = {name: row[name] for name in _COLUMNS}
        record["completed"] = bool(record["completed"])
        return record

    @staticmethod
    def _columns_for(data: Record) -> dict[str, Any]:
        unknown = set(data) - set(_COLUMNS)
        if unknown:
            raise ValueError(f"unknown record fields: {', '.join(sorted(unknown))}")
        out = dict(data)
        if "completed" in out:
            out["completed"] = 1 if out["completed"] else 0
        return out

    # ---- sync (thread) implementations ----

    def count_documents(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)
        finally:
            conn.close()

    def _get_sync(self, doc_id: str) -> Record | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (doc_id,)).fetchone()
            return self._row_to_record(row) if row else None
        finally:
            conn.close()

    def _owner_of(self, conn: sqlite3.Connection, doc_id: str) -> str | None:
        row = conn.execute("SELECT user_id FROM tasks WHERE id = ?", (doc_id,)).fetchone()
        return None if row is None else str(row["user_id"])

    def _set_sync(self, doc_id: str, data: Record, merge: bool) -> set[str]:
        cols = self._columns_for(data)
        conn = self._get_conn()
        try:
            owners: set[str] = set()
            prev_owner = self._owner_of(conn, doc_id)
            if prev_owner is not None:
                owners.add(prev_owner)

            # Column names come from _COLUMNS only (checked above).
            names = list(cols)
            col_list = ", ".join(["id", "updated_at", *names])
            placeholders = ", ".join("?" for _ in range(len(names) + 2))
            insert = f"INSERT INTO tasks({col_list}) VALUES ({placeholders})"
            params = (doc_id, time.time(), *(cols[n] for n in names))

            if merge:
                # Upsert touching only the given columns.
                updates = ", ".join(["updated_at = excluded.updated_at", *(f"{n} = excluded.{n}" for n in names)])
                conn.execute(f"{insert} ON CONFLICT(id) DO UPDATE SET {updates}", params)
            else:
                conn.execute("DELETE FROM tasks WHERE id = ?", (doc_id,))
                conn.execute(insert, params)
            conn.commit()

            new_owner = self._owner_of(conn, doc_id)
            if new_owner is not None:
                owners.add(new_owner)
            return owners
        finally:
            conn.close()

    def _delete_sync(self, doc_id: str) -> set[str]:
        conn = self._get_conn()
        try:
            owner = self._owner_of(conn, doc_id)
            if owner is None:
                return set()
            conn.execute("DELETE FROM tasks WHERE id = ?", (doc_id,))
            conn.commit()
            return {owner}
        finally:
            conn.close()

    def query_owner(self, owner_id: str) -> list[DocumentSnapshot]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM tasks WHERE user_id = ? ORDER BY id ASC",
                (owner_id,),
            ).fetchall()
            return [DocumentSnapshot(id=str(r["id"]), data=self._row_to_record(r)) for r in rows]
        finally:
            conn.close()

    # ---- DocumentStore ----

    async def get(self, doc_id: str) -> Record | None:
        return await asyncio.to_thread(self._get_sync, doc_id)

    async def set(self, doc_id: str, data: Record, *, merge: bool = False) -> None:
        owners = await asyncio.to_thread(self._set_sync, doc_id, data, merge)
        logger.debug("Document written id=%s merge=%s", doc_id, merge)
        self._wake(owners)

    async def delete(self, doc_id: str) -> None:
        owners = await asyncio.to_thread(self._delete_sync, doc_id)
        logger.debug("Document deleted id=%s", doc_id)
        self._wake(owners)

    def listen(
            self,
            owner_id: str,
            on_change: SnapshotCallback,
            on_error: ErrorCallback,
    ) -> Unsubscribe:
        key = self._next_watcher_id
        self._next_watcher_id += 1
        watcher = _Watcher(owner_id, on_change, on_error)
        watcher.task = asyncio.get_running_loop().create_task(self._watch(key, watcher))
        self._watchers[key] = watcher
        logger.debug("Watcher %s started owner=%s", key, owner_id)

        def unsubscribe() -> None:
            w = self._watchers.pop(key, None)
            if w is not None and w.task is not None:
                w.task.cancel()
                self._retired.add(w.task)
                w.task.add_done_callback(self._retired.discard)
                logger.debug("Watcher %s stopped owner=%s", key, owner_id)

        return unsubscribe

    def watcher_count(self) -> int:
        return len(self._watchers)

    def stopping_count(self) -> int:
        """Watchers that were unsubscribed but whose task has not finished yet."""
        return len(self._retired)

    # ---- internals ----

    def _wake(self, owners: set[str]) -> None:
        for w in self._watchers.values():
            if w.owner_id in owners:
                w.wake.set()

    async def _watch(self, key: int, watcher: _Watcher) -> None:
        """
        Polling loop behind one live query. To stop it, cancel the task.

        Delivers the first result set unconditionally, then only on change.
        A failed read goes to on_error; the loop keeps polling.
        """
        last: list[DocumentSnapshot] | None = None

        while key in self._watchers:
            watcher.wake.clear()
            try:
                docs = await asyncio.to_thread(self.query_owner, watcher.owner_id)
            except Exception as exc:
                logger.warning("Watcher %s query failed owner=%s: %s", key, watcher.owner_id, exc)
                watcher.on_error(exc)
            else:
                if key in self._watchers and docs != last:
                    last = docs
                    try:
                        watcher.on_change(docs)
                    except Exception:
                        logger.exception("Snapshot listener crashed watcher=%s", key)

            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(watcher.wake.wait(), timeout=self._poll_s)
