"""
Emotion catalog: the deduplicated registry of named emotions and their category,
plus the mood_emotions junction rows linking entries to catalog emotions.

Names are unique case-insensitively (the column is COLLATE NOCASE, so plain
'=' comparisons on name already ignore case).
"""

import sqlite3
import logging
from contextlib import contextmanager
from typing import Iterable, Iterator, List, Optional

from database import Database
from models import DEFAULT_EMOTIONS, Emotion, EmotionCategory

logger = logging.getLogger(__name__)


class DuplicateEmotionError(ValueError):
    """Raised when an add/rename would create a second emotion with the same name"""

    def __init__(self, name: str):
        super().__init__(f"An emotion named '{name}' already exists")
        self.name = name


def validate_emotion(emotion: Emotion) -> Emotion:
    """Trim the name and check the category; raises ValueError on bad input"""
    name = (emotion.name or "").strip()
    if not name:
        raise ValueError("Emotion name cannot be empty")
    if not EmotionCategory.is_valid(emotion.category):
        raise ValueError(f"Invalid emotion category: {emotion.category}")
    return Emotion(name, emotion.category)


class EmotionCatalog:
    """Manages the emotions table and entry-emotion links"""

    def __init__(self, db: Database):
        self.db = db

    @contextmanager
    def _scope(self, conn: Optional[sqlite3.Connection]) -> Iterator[sqlite3.Connection]:
        # Join the caller's transaction when given one, otherwise open our own
        if conn is not None:
            yield conn
        else:
            with self.db.transaction() as own:
                yield own

    def get_all(self) -> List[Emotion]:
        rows = self.db.connection().execute(
            "SELECT name, category FROM emotions ORDER BY name COLLATE NOCASE ASC"
        ).fetchall()
        return [Emotion(row["name"], row["category"]) for row in rows]

    def find_id(self, conn: sqlite3.Connection, name: str) -> Optional[int]:
        row = conn.execute("SELECT id FROM emotions WHERE name = ?", (name.strip(),)).fetchone()
        return row["id"] if row else None

    def get_or_create(self, conn: sqlite3.Connection, emotion: Emotion, update_category: bool = True) -> int:
        """Get existing emotion ID (optionally overwriting its category) or create it"""
        emotion = validate_emotion(emotion)
        row = conn.execute("SELECT id, category FROM emotions WHERE name = ?", (emotion.name,)).fetchone()

        if row:
            if update_category and row["category"] != emotion.category:
                conn.execute("UPDATE emotions SET category = ? WHERE id = ?", (emotion.category, row["id"]))
            return row["id"]

        cursor = conn.execute(
            "INSERT INTO emotions (name, category) VALUES (?, ?)",
            (emotion.name, emotion.category),
        )
        return cursor.lastrowid

    def add(self, emotion: Emotion) -> int:
        emotion = validate_emotion(emotion)
        with self.db.transaction() as conn:
            if self.find_id(conn, emotion.name) is not None:
                raise DuplicateEmotionError(emotion.name)
            cursor = conn.execute(
                "INSERT INTO emotions (name, category) VALUES (?, ?)",
                (emotion.name, emotion.category),
            )
        logger.info(f"✨ Created new emotion: {emotion.name} ({emotion.category})")
        return cursor.lastrowid

    def rename(self, old_name: str, new_emotion: Emotion, conn: sqlite3.Connection = None) -> int:
        """Rename/recategorize the row matching old_name; returns rows changed"""
        new_emotion = validate_emotion(new_emotion)
        with self._scope(conn) as scoped:
            current_id = self.find_id(scoped, old_name)
            existing_id = self.find_id(scoped, new_emotion.name)
            if existing_id is not None and existing_id != current_id:
                raise DuplicateEmotionError(new_emotion.name)
            cursor = scoped.execute(
                "UPDATE emotions SET name = ?, category = ? WHERE name = ?",
                (new_emotion.name, new_emotion.category, old_name.strip()),
            )
        return cursor.rowcount

    def delete(self, name: str, conn: sqlite3.Connection = None) -> int:
        """Remove the catalog row only; entry snapshots are the caller's job"""
        with self._scope(conn) as scoped:
            cursor = scoped.execute("DELETE FROM emotions WHERE name = ?", (name.strip(),))
        return cursor.rowcount

    def upsert_category(self, name: str, category: str, conn: sqlite3.Connection = None) -> int:
        with self._scope(conn) as scoped:
            return self.get_or_create(scoped, Emotion(name, category), update_category=True)

    def link_entry(self, conn: sqlite3.Connection, entry_id: int, emotions: Iterable[Emotion]) -> None:
        """Replace the junction rows of an entry; an empty list just clears them"""
        conn.execute("DELETE FROM mood_emotions WHERE mood_id = ?", (entry_id,))

        for emotion in emotions:
            emotion_id = self.get_or_create(conn, emotion)
            conn.execute(
                "INSERT OR IGNORE INTO mood_emotions (mood_id, emotion_id) VALUES (?, ?)",
                (entry_id, emotion_id),
            )

    def emotions_for_entry(self, entry_id: int) -> List[Emotion]:
        rows = self.db.connection().execute("""
            SELECT e.name, e.category
            FROM mood_emotions me
            JOIN emotions e ON e.id = me.emotion_id
            WHERE me.mood_id = ?
            ORDER BY e.name COLLATE NOCASE
        """, (entry_id,)).fetchall()
        return [Emotion(row["name"], row["category"]) for row in rows]

    def ensure_defaults(self) -> int:
        """Seed the default emotions without touching rows that already exist"""
        inserted = 0
        with self.db.transaction() as conn:
            for emotion in DEFAULT_EMOTIONS:
                cursor = conn.execute(
                    "INSERT OR IGNORE INTO emotions (name, category) VALUES (?, ?)",
                    (emotion.name, emotion.category),
                )
                inserted += cursor.rowcount
        if inserted:
            logger.info(f"🏷️ Seeded {inserted} default emotions")
        return inserted

    def has_links(self) -> bool:
        row = self.db.connection().execute("SELECT COUNT(*) FROM mood_emotions").fetchone()
        return row[0] > 0
