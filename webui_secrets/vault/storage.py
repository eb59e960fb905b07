"""
Vault Storage — Query executor contract and the SQLite adapter.

Stores talk to the database through a small synchronous executor:
``prepare(sql)`` returns a statement with ``run`` (returns the change
count), ``get`` (one row or None) and ``all`` (list of rows). Rows are
mappings keyed by column name.

Stores never hold the executor directly. They receive a callable that
returns the executor, or None while the database is not available; every
public operation checks that first and degrades instead of raising.
"""
import time
import sqlite3
import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Protocol

from ..conf import CREDENTIALS_TABLE, IMAGES_TABLE

logger = logging.getLogger("webui.vault")


@dataclass(frozen=True)
class RunResult:
    changes: int


class Statement(Protocol):
    def run(self, *args: Any) -> RunResult: ...

    def get(self, *args: Any) -> Optional[Mapping[str, Any]]: ...

    def all(self, *args: Any) -> list[Mapping[str, Any]]: ...


class QueryExecutor(Protocol):
    def prepare(self, sql: str) -> Statement: ...


DatabaseGetter = Callable[[], Optional[QueryExecutor]]


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_SCHEMA = (
    f"""
    CREATE TABLE IF NOT EXISTS {CREDENTIALS_TABLE} (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        plugin_id TEXT NOT NULL,
        api_key TEXT NOT NULL,
        created_at INTEGER NOT NULL,
        updated_at INTEGER NOT NULL
    )
    """,
    f"""
    CREATE INDEX IF NOT EXISTS idx_{CREDENTIALS_TABLE}_user_plugin
    ON {CREDENTIALS_TABLE} (user_id, plugin_id)
    """,
    f"""
    CREATE INDEX IF NOT EXISTS idx_{CREDENTIALS_TABLE}_plugin
    ON {CREDENTIALS_TABLE} (plugin_id)
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {IMAGES_TABLE} (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        prompt TEXT NOT NULL,
        model TEXT NOT NULL,
        image_data TEXT NOT NULL,
        size TEXT,
        quality TEXT,
        created_at INTEGER NOT NULL
    )
    """,
    f"""
    CREATE INDEX IF NOT EXISTS idx_{IMAGES_TABLE}_user_created
    ON {IMAGES_TABLE} (user_id, created_at DESC)
    """,
)


def create_schema(db: QueryExecutor) -> None:
    """Create the credential and gallery tables if they are missing."""
    for ddl in _SCHEMA:
        db.prepare(ddl).run()
    logger.debug("Vault schema ensured")


# ---------------------------------------------------------------------------
# SQLite adapter
# ---------------------------------------------------------------------------

class SQLiteStatement:
    """Prepared statement bound to a sqlite3 connection."""

    def __init__(self, conn: sqlite3.Connection, sql: str):
        self._conn = conn
        self._sql = sql

    def run(self, *args: Any) -> RunResult:
        cursor = self._conn.execute(self._sql, args)
        try:
            return RunResult(changes=max(cursor.rowcount, 0))
        finally:
            cursor.close()

    def get(self, *args: Any) -> Optional[Mapping[str, Any]]:
        cursor = self._conn.execute(self._sql, args)
        try:
            row = cursor.fetchone()
        finally:
            cursor.close()
        return dict(row) if row is not None else None

    def all(self, *args: Any) -> list[Mapping[str, Any]]:
        cursor = self._conn.execute(self._sql, args)
        try:
            return [dict(row) for row in cursor.fetchall()]
        finally:
            cursor.close()


class SQLiteExecutor:
    """QueryExecutor over a single sqlite3 connection in autocommit mode."""

    def __init__(self, conn: sqlite3.Connection):
        conn.row_factory = sqlite3.Row
        self._conn = conn

    def prepare(self, sql: str) -> SQLiteStatement:
        return SQLiteStatement(self._conn, sql)

    def close(self) -> None:
        self._conn.close()


class Database:
    """Holds the process database connection, if there is one.

    ``get_safe`` is what the stores receive: it returns the executor once
    ``open()`` succeeded and None before that or after ``close()``.
    """

    def __init__(self, path: str = ":memory:"):
        self._path = path
        self._executor: Optional[SQLiteExecutor] = None

    @property
    def path(self) -> str:
        return self._path

    def open(self) -> bool:
        if self._executor is not None:
            return True
        conn = None
        try:
            conn = sqlite3.connect(
                self._path,
                check_same_thread=False,
                isolation_level=None,
            )
            executor = SQLiteExecutor(conn)
            create_schema(executor)
        except sqlite3.Error as err:
            logger.error("Failed to open database %s: %s", self._path, err)
            if conn is not None:
                conn.close()
            return False
        self._executor = executor
        logger.info("Database opened at %s", self._path)
        return True

    def close(self) -> None:
        if self._executor is not None:
            self._executor.close()
            self._executor = None

    def get_safe(self) -> Optional[QueryExecutor]:
        return self._executor
