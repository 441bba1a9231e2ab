#!/usr/bin/env python3
"""
Schema bootstrap and data migrations for the mood journal database.
Creates missing tables/indexes and adds columns introduced by later app versions.
Every step is additive and safe to run on every startup.
"""

import sqlite3
import logging
import os
import sys
from typing import Dict, Any, List, Tuple

from config import get_log_level
from database import Database
from emotion_catalog import EmotionCatalog
from serialization import parse_legacy_emotion_item, serialize_emotions, load_json_list

logger = logging.getLogger(__name__)

CREATE_MOODS_TABLE = """
    CREATE TABLE IF NOT EXISTS moods (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        mood INTEGER NOT NULL,
        note TEXT,
        timestamp DATETIME,
        emotions TEXT DEFAULT '[]',
        context_tags TEXT DEFAULT '[]',
        energy INTEGER
    )
"""

# Applied in this order; each one is skipped when its column already exists
COLUMN_MIGRATIONS: List[Tuple[str, str]] = [
    ("emotions", "TEXT DEFAULT '[]'"),
    ("context_tags", "TEXT DEFAULT '[]'"),
    ("energy", "INTEGER"),
    ("photos_json", "TEXT DEFAULT '[]'"),
    ("location_json", "TEXT"),
    ("voice_memos_json", "TEXT DEFAULT '[]'"),
    ("based_on_entry_id", "INTEGER"),
]

CREATE_EMOTIONS_TABLE = """
    CREATE TABLE IF NOT EXISTS emotions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE COLLATE NOCASE,
        category TEXT NOT NULL CHECK(category IN ('positive', 'negative', 'neutral'))
    )
"""

CREATE_MOOD_EMOTIONS_TABLE = """
    CREATE TABLE IF NOT EXISTS mood_emotions (
        mood_id INTEGER NOT NULL,
        emotion_id INTEGER NOT NULL,
        PRIMARY KEY (mood_id, emotion_id),
        FOREIGN KEY (mood_id) REFERENCES moods(id) ON DELETE CASCADE,
        FOREIGN KEY (emotion_id) REFERENCES emotions(id) ON DELETE CASCADE
    )
"""

ESSENTIAL_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_moods_timestamp ON moods(timestamp DESC)",
    "CREATE INDEX IF NOT EXISTS idx_mood_emotions_mood_id ON mood_emotions(mood_id)",
]

REQUIRED_TABLES = ["moods", "emotions", "mood_emotions"]


def get_existing_columns(conn: sqlite3.Connection, table_name: str) -> set:
    return {row[1] for row in conn.execute(f"PRAGMA table_info({table_name})").fetchall()}


def bootstrap(db: Database) -> Dict[str, Any]:
    """
    Bring the schema up to date inside one transaction.
    Any failing statement rolls everything back and propagates - the app
    must not run against a half-migrated schema.
    """
    columns_added = []

    with db.transaction() as conn:
        conn.execute(CREATE_MOODS_TABLE)

        existing_columns = get_existing_columns(conn, "moods")
        for column_name, column_def in COLUMN_MIGRATIONS:
            if column_name not in existing_columns:
                conn.execute(f"ALTER TABLE moods ADD COLUMN {column_name} {column_def}")
                columns_added.append(column_name)
                logger.info(f"✅ Added column: {column_name}")

        conn.execute(CREATE_EMOTIONS_TABLE)
        conn.execute(CREATE_MOOD_EMOTIONS_TABLE)

        for index_sql in ESSENTIAL_INDEXES:
            conn.execute(index_sql)

    if columns_added:
        logger.info(f"🎉 Schema bootstrap completed: {len(columns_added)} columns added")
    else:
        logger.info("✅ Database schema is up to date")

    return {"success": True, "columns_added": columns_added}


def check_database_schema(db_path: str) -> Dict[str, Any]:
    """Check the current database schema and identify missing tables and columns"""
    conn = sqlite3.connect(db_path, timeout=30.0)
    try:
        cursor = conn.cursor()
        cursor.execute("SELECT name FROM sqlite_master WHERE type='table'")
        tables = {row[0] for row in cursor.fetchall()}

        if "moods" not in tables:
            return {
                "exists": False,
                "missing_tables": [t for t in REQUIRED_TABLES if t not in tables],
                "missing_columns": [name for name, _ in COLUMN_MIGRATIONS],
                "needs_migration": True,
            }

        columns = get_existing_columns(conn, "moods")
        missing_columns = [name for name, _ in COLUMN_MIGRATIONS if name not in columns]
        missing_tables = [t for t in REQUIRED_TABLES if t not in tables]

        cursor.execute("SELECT COUNT(*) FROM moods")
        total_moods = cursor.fetchone()[0]

        return {
            "exists": True,
            "columns": sorted(columns),
            "missing_columns": missing_columns,
            "missing_tables": missing_tables,
            "total_moods": total_moods,
            "needs_migration": bool(missing_columns or missing_tables),
        }
    finally:
        conn.close()


def _needs_category_upgrade(items: list) -> bool:
    return any(
        isinstance(item, str) or (isinstance(item, dict) and "category" not in item)
        for item in items
    )


def migrate_emotion_categories(db: Database) -> Dict[str, int]:
    """Rewrite legacy emotion blobs (bare strings, objects without category) as {name, category}"""
    migrated = 0
    skipped = 0

    with db.transaction() as conn:
        rows = conn.execute("SELECT id, emotions FROM moods").fetchall()
        for row in rows:
            items = load_json_list(row["emotions"])
            if not items or not _needs_category_upgrade(items):
                skipped += 1
                continue

            emotions = [e for e in map(parse_legacy_emotion_item, items) if e is not None]
            conn.execute(
                "UPDATE moods SET emotions = ? WHERE id = ?",
                (serialize_emotions(emotions), row["id"]),
            )
            migrated += 1

    logger.info(f"🔄 Emotion category migration: {migrated} migrated, {skipped} skipped")
    return {"migrated": migrated, "skipped": skipped}


def backfill_emotion_links(db: Database) -> Dict[str, int]:
    """Populate catalog and junction rows from entry blobs when no links exist yet"""
    catalog = EmotionCatalog(db)
    if catalog.has_links():
        return {"migrated": 0, "emotions": 0}

    migrated = 0
    emotion_ids: Dict[str, int] = {}

    with db.transaction() as conn:
        rows = conn.execute("SELECT id, emotions FROM moods").fetchall()
        for row in rows:
            emotions = [e for e in map(parse_legacy_emotion_item, load_json_list(row["emotions"])) if e]
            if not emotions:
                continue

            for emotion in emotions:
                if emotion.key not in emotion_ids:
                    emotion_ids[emotion.key] = catalog.get_or_create(conn, emotion, update_category=False)
                conn.execute(
                    "INSERT OR IGNORE INTO mood_emotions (mood_id, emotion_id) VALUES (?, ?)",
                    (row["id"], emotion_ids[emotion.key]),
                )
            migrated += 1

    logger.info(f"🔗 Emotion link backfill: {migrated} moods linked, {len(emotion_ids)} unique emotions")
    return {"migrated": migrated, "emotions": len(emotion_ids)}


def prepare_database(db: Database) -> Dict[str, Any]:
    """Bootstrap the schema, upgrade legacy data, and seed default emotions"""
    result = bootstrap(db)
    result["categories"] = migrate_emotion_categories(db)
    result["links"] = backfill_emotion_links(db)
    result["defaults_seeded"] = EmotionCatalog(db).ensure_defaults()
    return result


def main():
    """Main function for command-line usage"""
    logging.basicConfig(level=get_log_level())

    if len(sys.argv) < 2:
        print("Usage: python schema_migration.py <database_path>")
        sys.exit(1)

    db_path = sys.argv[1]

    if os.path.exists(db_path):
        logger.info("🔍 Checking current database schema...")
        schema_info = check_database_schema(db_path)
        logger.info(f"  - Total moods: {schema_info.get('total_moods', 0)}")
        logger.info(f"  - Missing columns: {schema_info['missing_columns']}")
        logger.info(f"  - Missing tables: {schema_info['missing_tables']}")
    else:
        logger.info(f"📁 Database does not exist at {db_path}, creating it")

    db = Database(db_path)
    try:
        result = prepare_database(db)
    except sqlite3.Error as e:
        logger.error(f"💥 Migration failed: {e}")
        sys.exit(1)
    finally:
        db.close()

    logger.info(f"🎉 Database migration completed, columns added: {result['columns_added']}")


if __name__ == "__main__":
    main()
