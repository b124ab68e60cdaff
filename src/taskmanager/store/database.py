"""SQLite database layer with async access via aiosqlite."""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)


_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id                TEXT PRIMARY KEY,
    email             TEXT NOT NULL,
    first_name        TEXT,
    last_name         TEXT,
    image_url         TEXT,
    image_storage_id  TEXT
);

CREATE TABLE IF NOT EXISTS tasks (
    id           TEXT PRIMARY KEY,
    user_id      TEXT NOT NULL,
    title        TEXT NOT NULL CHECK (length(title) > 0),
    description  TEXT,
    status       TEXT NOT NULL DEFAULT 'todo'
                 CHECK (status IN ('todo', 'in-progress', 'done')),
    due_date     INTEGER,
    created_at   INTEGER NOT NULL,
    updated_at   INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS id_sequences (
    prefix   TEXT PRIMARY KEY,
    next_val INTEGER NOT NULL DEFAULT 1
);
"""

# tasks.user_id deliberately carries no REFERENCES clause: users are never
# deleted and task rows are not cascaded.
_INDEX_SQL = """
CREATE UNIQUE INDEX IF NOT EXISTS idx_users_email
    ON users(email);

CREATE UNIQUE INDEX IF NOT EXISTS idx_users_name
    ON users(first_name, last_name);

CREATE INDEX IF NOT EXISTS idx_tasks_user
    ON tasks(user_id);

CREATE INDEX IF NOT EXISTS idx_tasks_user_status
    ON tasks(user_id, status);

CREATE INDEX IF NOT EXISTS idx_tasks_due_date
    ON tasks(due_date);

CREATE INDEX IF NOT EXISTS idx_tasks_created
    ON tasks(created_at);
"""


def now_ms() -> int:
    """Return the current time as integer epoch milliseconds."""
    return int(time.time() * 1000)


class Database:
    """Async SQLite database wrapper using a single aiosqlite connection.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file.  Use ``":memory:"`` for tests.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None
        self._tx_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Open the connection, enable WAL mode, and create the schema."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        # isolation_level=None keeps the connection in autocommit mode so
        # that explicit BEGIN in transaction() is the only multi-statement unit.
        self._conn = await aiosqlite.connect(self.db_path, isolation_level=None)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA busy_timeout = 5000")
        await self._conn.executescript(_SCHEMA_SQL)
        await self._conn.executescript(_INDEX_SQL)
        await self._conn.commit()
        logger.debug("Database initialised at %s", self.db_path)

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._conn

    # ------------------------------------------------------------------
    # Transaction support
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def transaction(self):
        """Async context manager for multi-statement transactions.

        Uses an asyncio lock so concurrent coroutines never issue a nested
        BEGIN on the shared connection.  ``BEGIN IMMEDIATE`` takes the write
        lock up front, which makes read-then-insert sequences atomic.
        """
        conn = self._require_conn()
        async with self._tx_lock:
            await conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise

    # ------------------------------------------------------------------
    # ID generation
    # ------------------------------------------------------------------

    async def register_prefix(self, prefix: str) -> None:
        """Ensure a prefix row exists in id_sequences (no-op if present)."""
        conn = self._require_conn()
        await conn.execute(
            "INSERT OR IGNORE INTO id_sequences (prefix, next_val) VALUES (?, 1)",
            (prefix,),
        )
        await conn.commit()

    async def generate_id(
        self, prefix: str, conn: aiosqlite.Connection | None = None
    ) -> str:
        """Atomically increment the sequence for *prefix* and return an ID.

        The returned ID has the form ``"TSK-001"``.  Pass *conn* when already
        inside :meth:`transaction`; the caller's commit then covers the
        increment.

        Raises
        ------
        ValueError
            If the prefix has not been registered.
        """
        if conn is not None:
            val = await self._next_val(conn, prefix)
        else:
            conn = self._require_conn()
            async with self._tx_lock:
                val = await self._next_val(conn, prefix)
                await conn.commit()
        return f"{prefix}-{val:03d}"

    @staticmethod
    async def _next_val(conn: aiosqlite.Connection, prefix: str) -> int:
        cursor = await conn.execute(
            "UPDATE id_sequences SET next_val = next_val + 1 "
            "WHERE prefix = ? RETURNING next_val - 1 AS val",
            (prefix,),
        )
        row = await cursor.fetchone()
        await cursor.close()
        if row is None:
            raise ValueError(f"Unregistered prefix: {prefix!r}")
        return row[0]

    # ------------------------------------------------------------------
    # Generic query helpers
    # ------------------------------------------------------------------

    async def execute_fetchall(self, sql: str, params: tuple = ()) -> list[dict]:
        """Execute a query and return all rows as dicts."""
        cursor = await self._require_conn().execute(sql, params)
        rows = await cursor.fetchall()
        if not rows:
            return []
        keys = [desc[0] for desc in cursor.description]
        return [dict(zip(keys, row)) for row in rows]

    async def execute_fetchone(self, sql: str, params: tuple = ()) -> dict | None:
        """Execute a query and return the first row as a dict, or None."""
        cursor = await self._require_conn().execute(sql, params)
        row = await cursor.fetchone()
        if row is None:
            return None
        keys = [desc[0] for desc in cursor.description]
        return dict(zip(keys, row))

    async def execute(self, sql: str, params: tuple = ()) -> int:
        """Execute a statement, commit, and return the affected row count.

        Waits for any open :meth:`transaction` so the commit never lands in
        the middle of another coroutine's unit of work.
        """
        conn = self._require_conn()
        async with self._tx_lock:
            cursor = await conn.execute(sql, params)
            await conn.commit()
            return cursor.rowcount
