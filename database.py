"""
Storage handle for the mood journal.

One SQLite connection per database file, opened lazily on first use and
shared by every caller. Multi-statement writes go through
Database.transaction(), which commits on success and rolls back on any error.
"""

import sqlite3
import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from config import ensure_data_directory, get_database_path

logger = logging.getLogger(__name__)


class Database:
    """Lazily opened SQLite connection with an explicit transaction scope"""

    def __init__(self, path: str):
        self.path = path
        self._conn: Optional[sqlite3.Connection] = None
        self._open_lock = threading.Lock()
        self._write_lock = threading.RLock()

    def connection(self) -> sqlite3.Connection:
        """Return the shared connection, opening it on first call"""
        if self._conn is not None:
            return self._conn
        with self._open_lock:
            if self._conn is None:
                self._conn = self._open()
        return self._conn

    def _open(self) -> sqlite3.Connection:
        ensure_data_directory(self.path)
        try:
            # isolation_level=None: no implicit transactions, BEGIN/COMMIT are ours
            conn = sqlite3.connect(self.path, timeout=30.0, isolation_level=None, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
        except sqlite3.Error as e:
            logger.error(f"Database connection failed at {self.path}: {e}")
            raise
        logger.info(f"💾 Opened database at: {self.path}")
        return conn

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """BEGIN ... COMMIT, or ROLLBACK and re-raise on any exception"""
        conn = self.connection()
        with self._write_lock:
            if conn.in_transaction:
                raise RuntimeError("Transactions cannot be nested")
            conn.execute("BEGIN")
            try:
                yield conn
            except BaseException as e:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                logger.error(f"Transaction rolled back: {e}")
                raise
            else:
                try:
                    conn.execute("COMMIT")
                except sqlite3.Error as e:
                    # A failed COMMIT can leave the transaction open
                    if conn.in_transaction:
                        conn.execute("ROLLBACK")
                    logger.error(f"Commit failed, transaction rolled back: {e}")
                    raise

    def close(self) -> None:
        with self._open_lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None


_default_db: Optional[Database] = None
_default_lock = threading.Lock()


def get_database() -> Database:
    """Process-wide handle for DATABASE_PATH; created once, on first request"""
    global _default_db
    if _default_db is None:
        with _default_lock:
            if _default_db is None:
                _default_db = Database(get_database_path())
    return _default_db


def reset_database() -> None:
    """Close and forget the process-wide handle"""
    global _default_db
    with _default_lock:
        if _default_db is not None:
            _default_db.close()
        _default_db = None
