"""
SQLite-backed keyed store.

Durable adapter for the `KeyedStore` port. Several ledgers can share one
database file by using distinct namespaces; stores on the same file share
one connection per thread, so an `atomic()` scope spanning several ledgers
commits as a single SQLite transaction.

Entity ids (128-bit deal ids) and values (256-bit commitments) do not fit in
SQLite's signed 64-bit INTEGER, so both are stored as decimal TEXT.
"""

from __future__ import annotations

import logging
import os
import sqlite3
import threading
from typing import Dict, Optional

from .store import UNSET, EntityId, Offset, SlotKey, Value, _check_slot


logger = logging.getLogger(__name__)


class _Database:
    """Connections to one database file, one per thread, plus the open transaction depth."""

    def __init__(self, path: str) -> None:
        self.path = path
        self.users = 0
        self._local = threading.local()
        # A ":memory:" database only exists for the connection that created it.
        self._shared: Optional[sqlite3.Connection] = None

    def connection(self) -> sqlite3.Connection:
        if self.path == ":memory:":
            if self._shared is None:
                self._shared = sqlite3.connect(":memory:", isolation_level=None, check_same_thread=False)
            return self._shared

        conn = getattr(self._local, "conn", None)
        if conn is None:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            conn = sqlite3.connect(self.path, isolation_level=None)
            conn.execute("PRAGMA journal_mode=WAL;")
            self._local.conn = conn
            logger.debug(
                "SqliteStore: created connection (thread=%s, db=%s)",
                threading.current_thread().name,
                self.path,
            )
        return conn

    def begin(self) -> None:
        depth = getattr(self._local, "depth", 0)
        if depth == 0:
            # Write lock taken up front; no SQLITE_BUSY mid-scope.
            self.connection().execute("BEGIN IMMEDIATE")
        self._local.depth = depth + 1

    def end(self, commit: bool) -> None:
        depth = getattr(self._local, "depth", 0)
        if depth <= 0:
            raise RuntimeError("no open transaction")
        self._local.depth = depth - 1
        if depth == 1:
            self.connection().execute("COMMIT" if commit else "ROLLBACK")

    def close(self) -> None:
        if self._shared is not None:
            self._shared.close()
            self._shared = None
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None
        self._local.depth = 0


_databases: Dict[str, _Database] = {}
_databases_lock = threading.Lock()


def _attach(path: str) -> _Database:
    if path == ":memory:":
        db = _Database(path)
        db.users = 1
        return db
    with _databases_lock:
        db = _databases.get(path)
        if db is None:
            db = _databases[path] = _Database(path)
        db.users += 1
        return db


def _detach(db: _Database) -> None:
    with _databases_lock:
        db.users -= 1
        if db.users > 0:
            return
        if _databases.get(db.path) is db:
            del _databases[db.path]
    db.close()


class SqliteStore:
    """
    SQLite keyed store.

    Thread Safety:
    - Each thread gets its own connection via threading.local()
    - Writes outside a transaction autocommit; `begin`/`commit`/`rollback`
      are driven by `JournaledStore` around the outermost `atomic()` scope
    """

    def __init__(self, db_path: str, namespace: str = "default") -> None:
        if not isinstance(namespace, str) or not namespace:
            raise ValueError("namespace must be a non-empty str")
        self.db_path = db_path if db_path == ":memory:" else os.path.abspath(os.path.expanduser(db_path))
        self.namespace = namespace
        self._db: Optional[_Database] = None
        self.initialize()

    def _database(self) -> _Database:
        if self._db is None:
            self._db = _attach(self.db_path)
        return self._db

    def _get_connection(self) -> sqlite3.Connection:
        return self._database().connection()

    def initialize(self) -> None:
        """Create the slot table if it does not exist."""
        conn = self._get_connection()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS ledger_slots (
                namespace TEXT NOT NULL,
                entity_id TEXT NOT NULL,
                field_offset INTEGER NOT NULL,
                value TEXT NOT NULL,
                PRIMARY KEY (namespace, entity_id, field_offset)
            )
        """)

    def get(self, entity_id: EntityId, offset: Offset) -> Value:
        row = self._get_connection().execute(
            "SELECT value FROM ledger_slots WHERE namespace = ? AND entity_id = ? AND field_offset = ?",
            (self.namespace, str(entity_id), offset),
        ).fetchone()
        if row is None:
            return UNSET
        return int(row[0])

    def set(self, entity_id: EntityId, offset: Offset, value: Value) -> None:
        _check_slot(entity_id, offset, value)
        conn = self._get_connection()
        if value == UNSET:
            conn.execute(
                "DELETE FROM ledger_slots WHERE namespace = ? AND entity_id = ? AND field_offset = ?",
                (self.namespace, str(entity_id), offset),
            )
            return
        conn.execute(
            "INSERT OR REPLACE INTO ledger_slots (namespace, entity_id, field_offset, value) VALUES (?, ?, ?, ?)",
            (self.namespace, str(entity_id), offset, str(value)),
        )

    def get_all(self) -> Dict[SlotKey, Value]:
        rows = self._get_connection().execute(
            "SELECT entity_id, field_offset, value FROM ledger_slots WHERE namespace = ?",
            (self.namespace,),
        ).fetchall()
        return {(int(e), int(o)): int(v) for e, o, v in rows}

    # -- transactions ----------------------------------------------------------

    def begin(self) -> None:
        """Begin (or join) this thread's transaction on the database file."""
        self._database().begin()

    def commit(self) -> None:
        """Leave the transaction; the last store to leave commits it."""
        self._database().end(commit=True)

    def rollback(self) -> None:
        """Leave the transaction; the last store to leave rolls it back."""
        self._database().end(commit=False)

    def close(self) -> None:
        if self._db is not None:
            _detach(self._db)
            self._db = None

    def __repr__(self) -> str:
        return f"SqliteStore({self.db_path!r}, namespace={self.namespace!r})"
