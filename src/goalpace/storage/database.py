"""SQLite database management with WAL mode and atomic transactions."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

import aiosqlite

logger = logging.getLogger(__name__)

# Schema version for migrations
SCHEMA_VERSION = 1

# Database schema
SCHEMA = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

-- Goal hierarchy; deep_estimate_total_seconds is a cached roll-up of the subtree
CREATE TABLE IF NOT EXISTS goals (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    parent_id INTEGER REFERENCES goals(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    description TEXT,
    deadline DATETIME,
    deep_estimate_total_seconds INTEGER NOT NULL DEFAULT 0,
    color TEXT,
    created_at DATETIME NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_goal_parent ON goals(parent_id);

-- Leaf tasks; estimated_time_seconds is the source of truth for estimates
CREATE TABLE IF NOT EXISTS tasks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    goal_id INTEGER NOT NULL REFERENCES goals(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    estimated_time_seconds INTEGER,
    status TEXT NOT NULL DEFAULT 'pending',
    sort_order INTEGER DEFAULT 0,
    created_at DATETIME NOT NULL,
    completed_at DATETIME
);

CREATE INDEX IF NOT EXISTS idx_task_goal ON tasks(goal_id);

-- Logged focus sessions
CREATE TABLE IF NOT EXISTS focus_sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    goal_id INTEGER NOT NULL REFERENCES goals(id) ON DELETE CASCADE,
    task_id INTEGER REFERENCES tasks(id) ON DELETE SET NULL,
    start_time DATETIME NOT NULL,
    end_time DATETIME,
    duration_seconds INTEGER NOT NULL CHECK (duration_seconds > 0),
    mode TEXT NOT NULL,
    pomodoro_cycle TEXT NOT NULL DEFAULT 'work',
    note_accomplished TEXT,
    note_next_step TEXT,
    vibe TEXT,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_session_goal ON focus_sessions(goal_id);
CREATE INDEX IF NOT EXISTS idx_session_start ON focus_sessions(start_time);

-- Scheduled pauses (vacations) that keep streaks alive
CREATE TABLE IF NOT EXISTS pause_periods (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    start_date DATE NOT NULL,
    end_date DATE NOT NULL,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);
"""


class Transaction:
    """Query handle bound to one open transaction.

    Every statement issued through the handle lands in the same atomic unit.
    """

    def __init__(self, connection: aiosqlite.Connection):
        self._connection = connection

    async def execute(self, query: str, params: tuple[Any, ...] = ()) -> int:
        """Execute a query and return last row ID."""
        cursor = await self._connection.execute(query, params)
        return cursor.lastrowid or 0

    async def fetch_one(
        self, query: str, params: tuple[Any, ...] = ()
    ) -> dict[str, Any] | None:
        """Fetch a single row."""
        async with self._connection.execute(query, params) as cursor:
            row = await cursor.fetchone()
            if row:
                return dict(row)
            return None

    async def fetch_all(
        self, query: str, params: tuple[Any, ...] = ()
    ) -> list[dict[str, Any]]:
        """Fetch all rows."""
        async with self._connection.execute(query, params) as cursor:
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]

    async def insert(self, table: str, data: dict[str, Any]) -> int:
        """Insert a row into a table."""
        columns = ", ".join(data.keys())
        placeholders = ", ".join("?" * len(data))
        query = f"INSERT INTO {table} ({columns}) VALUES ({placeholders})"
        return await self.execute(query, tuple(data.values()))


class Database:
    """SQLite database manager with WAL mode.

    A single connection is shared; the lock serializes statements so that
    nothing outside a transaction can observe its intermediate writes.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._connection: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    async def connect(self) -> None:
        """Initialize database connection with WAL mode."""
        if self._connection is not None:
            return

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(
            self.db_path,
            isolation_level=None,  # Autocommit mode, we handle transactions manually
        )

        await self._connection.execute("PRAGMA journal_mode=WAL")
        await self._connection.execute("PRAGMA synchronous=NORMAL")
        await self._connection.execute("PRAGMA foreign_keys=ON")
        await self._connection.execute("PRAGMA busy_timeout=5000")

        # Row factory for dict-like access
        self._connection.row_factory = aiosqlite.Row

        await self._init_schema()

        logger.info(f"Database connected: {self.db_path}")

    async def _init_schema(self) -> None:
        """Initialize database schema."""
        if self._connection is None:
            raise RuntimeError("Database not connected")

        await self._connection.executescript(SCHEMA)

        async with self._connection.execute(
            "SELECT MAX(version) FROM schema_version"
        ) as cursor:
            row = await cursor.fetchone()
            current_version = row[0] if row and row[0] else 0

        if current_version < SCHEMA_VERSION:
            await self._connection.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            logger.info(f"Schema updated to version {SCHEMA_VERSION}")

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None
            logger.info("Database connection closed")

    def _require_connection(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise RuntimeError("Database not connected")
        return self._connection

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        """Context manager for database transactions.

        Commits when the block exits normally, rolls back and re-raises on
        any exception.
        """
        connection = self._require_connection()

        async with self._lock:
            await connection.execute("BEGIN IMMEDIATE")
            try:
                yield Transaction(connection)
                await connection.execute("COMMIT")
            except BaseException:
                await connection.execute("ROLLBACK")
                raise

    async def execute(
        self, query: str, params: tuple[Any, ...] = ()
    ) -> int:
        """Execute a single autocommitted query and return last row ID."""
        connection = self._require_connection()

        async with self._lock:
            return await Transaction(connection).execute(query, params)

    async def fetch_one(
        self, query: str, params: tuple[Any, ...] = ()
    ) -> dict[str, Any] | None:
        """Fetch a single row."""
        connection = self._require_connection()

        async with self._lock:
            return await Transaction(connection).fetch_one(query, params)

    async def fetch_all(
        self, query: str, params: tuple[Any, ...] = ()
    ) -> list[dict[str, Any]]:
        """Fetch all rows."""
        connection = self._require_connection()

        async with self._lock:
            return await Transaction(connection).fetch_all(query, params)

    async def insert(self, table: str, data: dict[str, Any]) -> int:
        """Insert a row into a table."""
        connection = self._require_connection()

        async with self._lock:
            return await Transaction(connection).insert(table, data)

    async def check_integrity(self) -> bool:
        """Check database integrity."""
        row = await self.fetch_one("PRAGMA integrity_check")
        is_ok = row is not None and next(iter(row.values())) == "ok"

        if not is_ok:
            logger.error("Database integrity check failed!")
        return is_ok
