# src/autojob/jobs/job_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any

from ..core.errors import StoreError

logger = logging.getLogger(__name__)

# collection -> (table, key field); a None key field means the table assigns the id.
COLLECTIONS: dict[str, tuple[str, str | None]] = {
    "session": ("sessions", "user_id"),
    "job": ("jobs", None),
}


class JobStore:
    """
    SQLite store for sessions and durable job records.

    Each collection has its own table of JSON documents:
    - sessions: put() upserts by user_id,
    - jobs: add() inserts and returns the new id (1, 2, 3, ...).

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "autojob.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._opened = False

    @property
    def db_path(self) -> Path:
        return self._db_path

    def open(self) -> None:
        if self._opened:
            return
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._ensure_schema()
        except (OSError, sqlite3.Error) as e:
            raise StoreError(f"Cannot open store {self._db_path}: {e}") from e
        self._opened = True
        logger.info(
            "JobStore ready db=%s sessions=%s jobs=%s",
            self._db_path,
            self.count("session"),
            self.count("job"),
        )

    def close(self) -> None:
        """No persistent connections are kept; only flips the open flag."""
        self._opened = False

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    user_id TEXT PRIMARY KEY,
                    data TEXT NOT NULL DEFAULT '{}',
                    updated_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS jobs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    data TEXT NOT NULL DEFAULT '{}',
                    created_at REAL NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def _check(self, collection: str) -> tuple[str, str | None]:
        if not self._opened:
            raise StoreError("Store is not open")
        if collection not in COLLECTIONS:
            raise StoreError(f"Unknown collection: {collection!r}")
        return COLLECTIONS[collection]

    @staticmethod
    def _encode(record: dict[str, Any]) -> str:
        try:
            return json.dumps(record, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise StoreError(f"Record is not JSON-serializable: {e}") from e

    # ---- public API ----

    def put(self, collection: str, record: dict[str, Any]) -> None:
        table, key_field = self._check(collection)
        if key_field is None:
            raise StoreError(f"Collection {collection!r} has no key; use add()")
        if record.get(key_field) is None:
            raise StoreError(f"Record for {collection!r} is missing key field {key_field!r}")

        key = str(record[key_field])
        data = self._encode(record)
        conn = self._get_conn()
        try:
            conn.execute(
                f"""
                INSERT INTO {table} ({key_field}, data, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT({key_field})
                DO UPDATE SET data = excluded.data, updated_at = excluded.updated_at
                """,
                (key, data, time.time()),
            )
            conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"put({collection!r}) failed: {e}") from e
        finally:
            conn.close()
        logger.debug("Stored %s key=%s", collection, key)

    def add(self, collection: str, record: dict[str, Any]) -> int:
        table, key_field = self._check(collection)
        if key_field is not None:
            raise StoreError(f"Collection {collection!r} is keyed by {key_field!r}; use put()")
        data = self._encode(record)
        conn = self._get_conn()
        try:
            cur = conn.execute(
                f"INSERT INTO {table} (data, created_at) VALUES (?, ?)",
                (data, time.time()),
            )
            conn.commit()
            new_id = int(cur.lastrowid or 0)
        except sqlite3.Error as e:
            raise StoreError(f"add({collection!r}) failed: {e}") from e
        finally:
            conn.close()
        logger.debug("Added %s id=%s", collection, new_id)
        return new_id

    def get(self, collection: str, key: str | int) -> dict[str, Any] | None:
        """Look up by key field, or by id for jobs."""
        table, key_field = self._check(collection)
        conn = self._get_conn()
        try:
            if key_field is None:
                row = conn.execute(f"SELECT data FROM {table} WHERE id = ?", (int(key),)).fetchone()
            else:
                row = conn.execute(
                    f"SELECT data FROM {table} WHERE {key_field} = ?", (str(key),)
                ).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        val = json.loads(row["data"])
        return val if isinstance(val, dict) else None

    def count(self, collection: str) -> int:
        table, _ = self._check(collection)
        conn = self._get_conn()
        try:
            (n,) = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
            return int(n)
        finally:
            conn.close()
