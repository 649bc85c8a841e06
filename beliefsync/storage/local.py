"""SQLite-backed local durable store.

Synchronous key -> string persistence for the client. Every failure is
logged and swallowed: a read that fails returns None, a write or delete
that fails does nothing. Durability problems must never block the caller.
"""

import contextlib
import logging
import sqlite3
from pathlib import Path
from typing import List, Optional, Union

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS local_store (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""


class SQLiteLocalStore:
    """Local durable store keeping one row per key in a SQLite file.

    Args:
        db_path: Path to the SQLite database file. Parent directories are
            created on first use. ``":memory:"`` is not supported because
            connections are opened per operation.
    """

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path).expanduser()
        self._ready = False
        self._init_db()

    def _init_db(self) -> None:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with self._connect() as conn:
                conn.execute(SCHEMA)
            self._ready = True
        except (sqlite3.Error, OSError) as e:
            logger.warning(f"Local store unavailable at {self.db_path}: {e}")

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
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

    @property
    def available(self) -> bool:
        """False if the database could not be initialised."""
        return self._ready

    def read(self, key: str) -> Optional[str]:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT value FROM local_store WHERE key = ?", (key,)
                ).fetchone()
        except (sqlite3.Error, OSError) as e:
            logger.debug(f"Local read failed for {key!r}: {e}")
            return None
        return row[0] if row else None

    def write(self, key: str, value: str) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    """INSERT INTO local_store (key, value) VALUES (?, ?)
                       ON CONFLICT(key) DO UPDATE SET value = excluded.value""",
                    (key, value),
                )
        except (sqlite3.Error, OSError) as e:
            logger.debug(f"Local write failed for {key!r}: {e}")

    def delete(self, key: str) -> None:
        try:
            with self._connect() as conn:
                conn.execute("DELETE FROM local_store WHERE key = ?", (key,))
        except (sqlite3.Error, OSError) as e:
            logger.debug(f"Local delete failed for {key!r}: {e}")

    def keys(self) -> List[str]:
        try:
            with self._connect() as conn:
                rows = conn.execute("SELECT key FROM local_store ORDER BY key").fetchall()
        except (sqlite3.Error, OSError) as e:
            logger.debug(f"Local key listing failed: {e}")
            return []
        return [row[0] for row in rows]

    def close(self) -> None:
        """Connections are per-operation; nothing to release."""
        pass
