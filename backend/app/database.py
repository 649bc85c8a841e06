"""SQLite key/value store backing the state service.

One generic table::

    store(key TEXT PRIMARY KEY, value TEXT, updated_at INTEGER)

``value`` holds the client's payload JSON-encoded. ``updated_at`` is the
server's receipt time in milliseconds and moves strictly forward on every
write to a key, even when two writes land in the same millisecond.
"""

import contextlib
import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Annotated, Any

from fastapi import Depends

from .config import Settings, get_settings

logger = logging.getLogger("beliefsync.server.database")

STORE_TABLE = "store"

SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {STORE_TABLE} (
    key        TEXT PRIMARY KEY,
    value      TEXT,
    updated_at INTEGER
)
"""


def _now_ms() -> int:
    return int(time.time() * 1000)


class StateStore:
    """Connection factory for the key/value table.

    Connections are opened per operation. Each upsert is a single statement.
    """

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute(SCHEMA)

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=5000")
        return conn

    @contextlib.contextmanager
    def _connect(self):
        """Commit on success, roll back on error, always close."""
        conn = self._get_conn()
        try:
            yield conn
            conn.commit()
        except Exception as e:
            logger.debug(f"Transaction failed, rolling back: {e}")
            conn.rollback()
            raise
        finally:
            conn.close()


_stores: dict[str, StateStore] = {}


def get_state_store(settings: Settings | None = None) -> StateStore:
    """Get the cached store for the configured database path."""
    if settings is None:
        settings = get_settings()
    path = str(Path(settings.database_path).expanduser())
    if path not in _stores:
        _stores[path] = StateStore(path)
    return _stores[path]


def get_db(settings: Annotated[Settings, Depends(get_settings)]) -> StateStore:
    """FastAPI dependency for the state store."""
    return get_state_store(settings)


# Type alias for dependency injection
Database = Annotated[StateStore, Depends(get_db)]


# =============================================================================
# State Operations
# =============================================================================


async def get_state(db: StateStore, key: str) -> dict[str, Any] | None:
    """Get a key's decoded value and ``updated_at``, or None if absent."""
    with db._connect() as conn:
        row = conn.execute(
            f"SELECT value, updated_at FROM {STORE_TABLE} WHERE key = ?", (key,)
        ).fetchone()
    if not row:
        return None
    return {
        "value": json.loads(row["value"]) if row["value"] is not None else None,
        "updated_at": row["updated_at"],
    }


async def upsert_state(db: StateStore, key: str, value: Any) -> int:
    """Insert or overwrite a key.

    Returns:
        The new ``updated_at``: the current server time, or one past the
        previous value if the clock has not moved beyond it.
    """
    encoded = json.dumps(value)
    with db._connect() as conn:
        conn.execute(
            f"""INSERT INTO {STORE_TABLE} (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = MAX(excluded.updated_at, COALESCE({STORE_TABLE}.updated_at, 0) + 1)""",
            (key, encoded, _now_ms()),
        )
        row = conn.execute(
            f"SELECT updated_at FROM {STORE_TABLE} WHERE key = ?", (key,)
        ).fetchone()
    return row["updated_at"]


async def delete_state(db: StateStore, key: str) -> bool:
    """Delete a key. Returns True if a row existed."""
    with db._connect() as conn:
        cursor = conn.execute(f"DELETE FROM {STORE_TABLE} WHERE key = ?", (key,))
    return cursor.rowcount > 0


async def check_database(db: StateStore) -> bool:
    """Verify the database answers queries."""
    try:
        with db._connect() as conn:
            conn.execute(f"SELECT 1 FROM {STORE_TABLE} LIMIT 1").fetchall()
        return True
    except sqlite3.Error as e:
        logger.warning(f"Database health check failed: {e}")
        return False
