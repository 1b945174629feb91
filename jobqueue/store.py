"""
Store - the relational datastore shared by producers and workers.

SQLiteStore is a handle on one database file. Every thread gets its own
sqlite3 connection (WAL mode, busy timeout); transactions are explicit.
StoreManager holds the named stores a process has configured; it is what
the dependency resolver hands to connection factories.

Usage:
    from jobqueue.store import SQLiteStore, StoreManager

    stores = StoreManager({"default": SQLiteStore("vault/queue.db")})
    store = stores.get_store("default")

    with store.transaction(immediate=True) as conn:
        row = conn.execute("SELECT ...").fetchone()
        conn.execute("UPDATE ...")

Locking:
    SQLite has no row locks. transaction(immediate=True) issues
    BEGIN IMMEDIATE, which takes the database write lock up front, so a
    select-then-update inside it cannot interleave with another writer.
    A second writer waits (up to busy_timeout) for the first to commit.
"""

import logging
import re
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

from jobqueue.exceptions import ConfigurationError

logger = logging.getLogger("job_queue")

DEFAULT_BUSY_TIMEOUT_MS = 5000

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def validate_identifier(name: str) -> str:
    """Table names are interpolated into SQL, so only plain identifiers pass."""
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ConfigurationError(f"Invalid table name: {name!r}")
    return name


# =============================================================================
# SCHEMA
# =============================================================================

JOBS_SCHEMA = """
CREATE TABLE IF NOT EXISTS {jobs} (
    id TEXT PRIMARY KEY,
    queue TEXT NOT NULL,
    payload TEXT NOT NULL,
    priority INTEGER NOT NULL DEFAULT 0,
    unique_key TEXT,
    created_at TEXT NOT NULL,
    execute_at TEXT,
    reserved_at TEXT,
    attempts INTEGER NOT NULL DEFAULT 0,
    last_executed_at TEXT,
    failed_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_{jobs}_pop ON {jobs}(queue, priority DESC, created_at);
CREATE INDEX IF NOT EXISTS idx_{jobs}_unique ON {jobs}(queue, unique_key);
"""

FAILED_SCHEMA = """
CREATE TABLE IF NOT EXISTS {failed} (
    id TEXT PRIMARY KEY,
    queue TEXT NOT NULL,
    job_id TEXT NOT NULL,
    payload TEXT NOT NULL,
    exception TEXT NOT NULL,
    failed_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_{failed}_queue ON {failed}(queue, failed_at);
"""

RECURRING_SCHEMA = """
CREATE TABLE IF NOT EXISTS {recurring} (
    id TEXT PRIMARY KEY,
    queue TEXT NOT NULL,
    name TEXT NOT NULL,
    cron TEXT NOT NULL,
    payload TEXT NOT NULL,
    priority INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    last_run_at TEXT,
    UNIQUE (queue, name)
);
"""


# =============================================================================
# SQLITE STORE
# =============================================================================

class SQLiteStore:
    """
    Handle on one SQLite database file.

    Connections are opened lazily per thread and reused. close() drops
    them all; the next call on any thread reconnects.
    """

    def __init__(self, db_path: Union[Path, str], busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS):
        if str(db_path) == ":memory:":
            # Each thread would get its own private database
            raise ConfigurationError("SQLiteStore needs a file path, not ':memory:'")

        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.busy_timeout_ms = int(busy_timeout_ms)

        self._local = threading.local()
        self._lock = threading.Lock()
        self._connections: List[sqlite3.Connection] = []
        self._generation = 0
        self._schemas: set = set()

        logger.info(f"SQLiteStore initialized at {self.db_path}")

    def _get_conn(self) -> sqlite3.Connection:
        """Get thread-local connection."""
        conn = getattr(self._local, "conn", None)
        if conn is None or getattr(self._local, "generation", None) != self._generation:
            conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
                timeout=self.busy_timeout_ms / 1000,
                isolation_level=None,  # transactions are begun explicitly
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute(f"PRAGMA busy_timeout={self.busy_timeout_ms}")
            with self._lock:
                self._connections.append(conn)
                self._local.generation = self._generation
            self._local.conn = conn
        return conn

    @contextmanager
    def transaction(self, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        """
        Run a block in one transaction; commit on success, roll back on error.

        Args:
            immediate: take the write lock at BEGIN instead of at first write
        """
        conn = self._get_conn()
        conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
        try:
            yield conn
            conn.commit()
        except Exception:
            if conn.in_transaction:
                conn.rollback()
            raise

    def query(self, sql: str, params: Sequence = ()) -> List[sqlite3.Row]:
        """Autocommit read."""
        return self._get_conn().execute(sql, params).fetchall()

    def query_one(self, sql: str, params: Sequence = ()) -> Optional[sqlite3.Row]:
        return self._get_conn().execute(sql, params).fetchone()

    def ensure_schema(self, jobs_table: str, failed_table: str, recurring_table: str) -> None:
        """Create the queue tables (and indexes) if missing."""
        key: Tuple[str, str, str] = (
            validate_identifier(jobs_table),
            validate_identifier(failed_table),
            validate_identifier(recurring_table),
        )
        if key in self._schemas:
            return

        conn = self._get_conn()
        conn.executescript(JOBS_SCHEMA.format(jobs=jobs_table))
        conn.executescript(FAILED_SCHEMA.format(failed=failed_table))
        conn.executescript(RECURRING_SCHEMA.format(recurring=recurring_table))

        with self._lock:
            self._schemas.add(key)
        logger.debug(f"Schema ready in {self.db_path}: {', '.join(key)}")

    def close(self) -> None:
        """Close every connection opened on this store."""
        with self._lock:
            connections, self._connections = self._connections, []
            self._generation += 1
        for conn in connections:
            conn.close()
        self._local = threading.local()

    def __repr__(self) -> str:
        return f"SQLiteStore({str(self.db_path)!r})"


# =============================================================================
# STORE MANAGER
# =============================================================================

class StoreManager:
    """Named store handles (e.g. "default", "reporting")."""

    def __init__(self, stores: Optional[Dict[str, SQLiteStore]] = None):
        self._stores: Dict[str, SQLiteStore] = dict(stores or {})

    def add_store(self, name: str, store: SQLiteStore) -> None:
        if name in self._stores and self._stores[name] is not store:
            raise ConfigurationError(f"Store '{name}' is already configured")
        self._stores[name] = store

    def get_store(self, name: str = "default") -> SQLiteStore:
        store = self._stores.get(name)
        if store is None:
            known = ", ".join(sorted(self._stores)) or "none"
            raise ConfigurationError(f"Unknown store '{name}' (configured: {known})")
        return store

    def names(self) -> List[str]:
        return sorted(self._stores)

    def __contains__(self, name: object) -> bool:
        return name in self._stores

    def close_all(self) -> None:
        for store in self._stores.values():
            store.close()
