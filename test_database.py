#!/usr/bin/env python3
"""
Test the storage handle: lazy opening, commit/rollback and recovery after a failed commit.
"""

import os
import sqlite3
import tempfile

import pytest

from database import Database


class TestDatabaseTransactions:
    """Test suite for Database.transaction()"""

    def setup_method(self):
        self.temp_db = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
        self.temp_db.close()
        self.db_path = self.temp_db.name
        self.db = Database(self.db_path)

        # Deferred foreign keys are only checked at COMMIT
        self.db.connection().executescript("""
            CREATE TABLE parents (id INTEGER PRIMARY KEY);
            CREATE TABLE children (
                parent_id INTEGER REFERENCES parents(id) DEFERRABLE INITIALLY DEFERRED
            );
        """)

    def teardown_method(self):
        self.db.close()
        if os.path.exists(self.db_path):
            os.unlink(self.db_path)

    def _count(self, table):
        return self.db.connection().execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    def test_connection_opened_lazily(self):
        db = Database(self.db_path)
        assert not db.is_open
        assert db.connection() is db.connection()
        assert db.is_open
        db.close()
        assert not db.is_open

    def test_commit_on_success(self):
        with self.db.transaction() as conn:
            conn.execute("INSERT INTO parents (id) VALUES (1)")
        assert self._count("parents") == 1

    def test_rollback_on_error(self):
        with pytest.raises(ValueError):
            with self.db.transaction() as conn:
                conn.execute("INSERT INTO parents (id) VALUES (1)")
                raise ValueError("bad row")
        assert self._count("parents") == 0

    def test_nested_transaction_rejected(self):
        with self.db.transaction():
            with pytest.raises(RuntimeError):
                with self.db.transaction():
                    pass

    def test_failed_commit_leaves_handle_usable(self):
        with pytest.raises(sqlite3.IntegrityError):
            with self.db.transaction() as conn:
                conn.execute("INSERT INTO children (parent_id) VALUES (99)")

        assert not self.db.connection().in_transaction
        assert self._count("children") == 0

        with self.db.transaction() as conn:
            conn.execute("INSERT INTO parents (id) VALUES (99)")
            conn.execute("INSERT INTO children (parent_id) VALUES (99)")
        assert self._count("children") == 1
