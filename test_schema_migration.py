#!/usr/bin/env python3
"""
Test schema bootstrap against fresh and legacy databases, plus the emotion data migrations.
"""

import json
import os
import sqlite3
import tempfile

import pytest

import schema_migration
from database import Database
from emotion_catalog import EmotionCatalog
from schema_migration import (
    COLUMN_MIGRATIONS,
    bootstrap,
    check_database_schema,
    get_existing_columns,
    prepare_database,
)


class TestSchemaBootstrap:
    """Bootstrap on empty and outdated databases"""

    def setup_method(self):
        self.temp_db = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
        self.temp_db.close()
        self.db_path = self.temp_db.name
        self.db = Database(self.db_path)

    def teardown_method(self):
        self.db.close()
        if os.path.exists(self.db_path):
            os.unlink(self.db_path)

    def _tables(self):
        rows = self.db.connection().execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
        return {row[0] for row in rows}

    def _create_legacy_schema(self):
        """The earliest app version only stored mood, note and timestamp"""
        conn = sqlite3.connect(self.db_path)
        conn.execute("""
            CREATE TABLE moods (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                mood INTEGER NOT NULL,
                note TEXT,
                timestamp DATETIME
            )
        """)
        conn.execute("INSERT INTO moods (mood, note, timestamp) VALUES (6, 'first entry', 1700000000000)")
        conn.commit()
        conn.close()

    def test_fresh_database_gets_full_schema(self):
        result = bootstrap(self.db)

        assert result["success"] is True
        assert {"moods", "emotions", "mood_emotions"} <= self._tables()
        columns = get_existing_columns(self.db.connection(), "moods")
        for column_name, _ in COLUMN_MIGRATIONS:
            assert column_name in columns

        indexes = {row[0] for row in self.db.connection().execute(
            "SELECT name FROM sqlite_master WHERE type='index'"
        ).fetchall()}
        assert {"idx_moods_timestamp", "idx_mood_emotions_mood_id"} <= indexes

    def test_bootstrap_is_idempotent(self):
        bootstrap(self.db)
        second = bootstrap(self.db)
        assert second["columns_added"] == []

    def test_legacy_table_gets_missing_columns(self):
        self._create_legacy_schema()

        schema_info = check_database_schema(self.db_path)
        assert schema_info["needs_migration"] is True
        assert schema_info["missing_tables"] == ["emotions", "mood_emotions"]
        assert schema_info["total_moods"] == 1

        result = bootstrap(self.db)
        assert result["columns_added"] == [name for name, _ in COLUMN_MIGRATIONS]

        row = self.db.connection().execute("SELECT * FROM moods").fetchone()
        assert row["mood"] == 6
        assert row["note"] == "first entry"
        assert row["emotions"] == "[]"
        assert row["energy"] is None
        assert check_database_schema(self.db_path)["needs_migration"] is False

    def test_failed_step_rolls_back_whole_bootstrap(self, monkeypatch):
        monkeypatch.setattr(schema_migration, "COLUMN_MIGRATIONS", [
            ("emotions", "TEXT DEFAULT '[]'"),
            ("emotions", "TEXT DEFAULT '[]'"),
        ])
        self._create_legacy_schema()

        with pytest.raises(sqlite3.OperationalError):
            bootstrap(self.db)

        assert "emotions" not in get_existing_columns(self.db.connection(), "moods")
        assert self.db.connection().execute("SELECT COUNT(*) FROM moods").fetchone()[0] == 1

    def test_missing_database_reports_everything_missing(self):
        os.unlink(self.db_path)
        schema_info = check_database_schema(self.db_path)
        assert schema_info["exists"] is False
        assert schema_info["needs_migration"] is True


class TestEmotionDataMigrations:
    """Upgrading emotion blobs written by older app versions"""

    def setup_method(self):
        self.temp_db = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
        self.temp_db.close()
        self.db_path = self.temp_db.name
        self.db = Database(self.db_path)
        bootstrap(self.db)

    def teardown_method(self):
        self.db.close()
        if os.path.exists(self.db_path):
            os.unlink(self.db_path)

    def _insert_raw(self, emotions_json):
        cursor = self.db.connection().execute(
            "INSERT INTO moods (mood, timestamp, emotions) VALUES (5, 1700000000000, ?)", (emotions_json,)
        )
        return cursor.lastrowid

    def test_prepare_upgrades_blobs_and_backfills_links(self):
        entry_id = self._insert_raw(json.dumps(["Happy", {"name": "Bored"}]))
        untouched_id = self._insert_raw("[]")

        result = prepare_database(self.db)

        assert result["categories"] == {"migrated": 1, "skipped": 1}
        assert result["links"] == {"migrated": 1, "emotions": 2}

        stored = self.db.connection().execute(
            "SELECT emotions FROM moods WHERE id = ?", (entry_id,)
        ).fetchone()[0]
        assert json.loads(stored) == [
            {"name": "Happy", "category": "positive"},
            {"name": "Bored", "category": "neutral"},
        ]

        catalog = EmotionCatalog(self.db)
        linked = {e.name: e.category for e in catalog.emotions_for_entry(entry_id)}
        assert linked == {"Happy": "positive", "Bored": "neutral"}
        assert catalog.emotions_for_entry(untouched_id) == []

    def test_defaults_seeded_once(self):
        first = prepare_database(self.db)
        second = prepare_database(self.db)

        assert first["defaults_seeded"] == 6
        assert second["defaults_seeded"] == 0
        assert len(EmotionCatalog(self.db).get_all()) == 6

    def test_backfill_skipped_when_links_exist(self):
        self._insert_raw(json.dumps([{"name": "Calm", "category": "positive"}]))
        prepare_database(self.db)
        self._insert_raw(json.dumps([{"name": "Lonely", "category": "negative"}]))

        result = prepare_database(self.db)

        assert result["links"] == {"migrated": 0, "emotions": 0}
        names = [e.name for e in EmotionCatalog(self.db).get_all()]
        assert "Lonely" not in names
