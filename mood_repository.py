"""
Mood repository: CRUD, range queries and pagination over mood entries.

Every write that touches an entry's emotions updates both the JSON snapshot
on the moods row and the mood_emotions junction rows inside one transaction.
"""

import sqlite3
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from database import Database
from date_ranges import MoodDateRange, local_day_bounds, resolve_date_range
from emotion_catalog import DuplicateEmotionError, EmotionCatalog, validate_emotion
from models import MAX_LIST_ITEMS, MOOD_MAX, MOOD_MIN, Emotion, EmotionCategory, MoodEntry, MoodEntryInput
from serialization import (
    load_json_list,
    normalize_input,
    parse_legacy_emotion_item,
    parse_location,
    parse_timestamp,
    row_to_entry,
    sanitize_energy,
    serialize_array,
    serialize_emotions,
    serialize_location,
    unique_emotions,
)

logger = logging.getLogger(__name__)

INSERT_MOOD_SQL = """
    INSERT INTO moods (mood, note, timestamp, emotions, context_tags, energy,
                       photos_json, location_json, voice_memos_json, based_on_entry_id)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""


@dataclass
class PaginatedResult:
    entries: List[MoodEntry] = field(default_factory=list)
    total: int = 0
    has_more: bool = False


def validate_mood(mood: Any) -> int:
    if isinstance(mood, bool) or not isinstance(mood, (int, float)) or not float(mood).is_integer():
        raise ValueError(f"Mood must be an integer between {MOOD_MIN} and {MOOD_MAX}")
    if not MOOD_MIN <= mood <= MOOD_MAX:
        raise ValueError(f"Mood value {mood} is out of range ({MOOD_MIN}-{MOOD_MAX})")
    return int(mood)


def coerce_emotions(items: Optional[Iterable[Any]]) -> List[Emotion]:
    """Accept Emotion values or {name, category} dicts"""
    emotions = []
    for item in items or []:
        if isinstance(item, dict):
            item = Emotion(item.get("name") or "", item.get("category") or EmotionCategory.NEUTRAL.value)
        emotions.append(validate_emotion(item))
    return unique_emotions(emotions)[:MAX_LIST_ITEMS]


def _encode_location(value: Any) -> Optional[str]:
    return serialize_location(parse_location(value)) if value is not None else None


# field name -> (column, encoder) for partial updates
UPDATABLE_FIELDS: Dict[str, tuple] = {
    "mood": ("mood", validate_mood),
    "note": ("note", lambda value: value),
    "timestamp": ("timestamp", parse_timestamp),
    "emotions": ("emotions", lambda value: serialize_emotions(coerce_emotions(value))),
    "context_tags": ("context_tags", serialize_array),
    "energy": ("energy", sanitize_energy),
    "photos": ("photos_json", serialize_array),
    "location": ("location_json", _encode_location),
    "voice_memos": ("voice_memos_json", serialize_array),
    "based_on_entry_id": ("based_on_entry_id", lambda value: value),
}


class MoodRepository:
    """Provides full CRUD operations for mood entries"""

    def __init__(self, db: Database, catalog: EmotionCatalog = None, timezone_name: str = None):
        self.db = db
        self.catalog = catalog or EmotionCatalog(db)
        self.timezone_name = timezone_name

    def _fetch(self, conn: sqlite3.Connection, entry_id: int) -> Optional[MoodEntry]:
        row = conn.execute("SELECT * FROM moods WHERE id = ?", (entry_id,)).fetchone()
        return row_to_entry(row) if row else None

    def write_entry(self, conn: sqlite3.Connection, fields: Dict[str, Any]) -> int:
        """Insert one normalized row inside the caller's transaction, linking emotions if any"""
        emotions = fields.get("emotions") or []
        cursor = conn.execute(INSERT_MOOD_SQL, (
            fields["mood"],
            fields.get("note"),
            fields["timestamp"],
            serialize_emotions(emotions),
            serialize_array(fields.get("context_tags")),
            fields.get("energy"),
            serialize_array(fields.get("photos")),
            serialize_location(fields.get("location")),
            serialize_array(fields.get("voice_memos")),
            fields.get("based_on_entry_id"),
        ))
        entry_id = cursor.lastrowid

        if emotions:
            self.catalog.link_entry(conn, entry_id, emotions)

        return entry_id

    def insert(self, mood: int, note: Optional[str] = None, **metadata) -> MoodEntry:
        """Insert a mood with an optional note; metadata takes any other MoodEntryInput field"""
        return self.insert_entry(MoodEntryInput(mood=mood, note=note, **metadata))

    def insert_entry(self, entry: MoodEntryInput) -> MoodEntry:
        normalized = normalize_input(entry)
        normalized["mood"] = validate_mood(entry.mood)
        normalized["emotions"] = coerce_emotions(normalized["emotions"])
        normalized["location"] = parse_location(entry.location) if entry.location is not None else None

        with self.db.transaction() as conn:
            entry_id = self.write_entry(conn, normalized)

        return self.get_by_id(entry_id)

    def update(self, entry_id: int, **changes) -> Optional[MoodEntry]:
        """
        Apply only the supplied fields. A field passed as None is written as
        NULL/empty; a field not passed at all is left untouched.
        """
        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown mood fields: {', '.join(sorted(unknown))}")

        # mood is NOT NULL, so an explicit None counts as not provided
        if "mood" in changes and changes["mood"] is None:
            changes.pop("mood")

        assignments = []
        params = []
        for name, value in changes.items():
            column, encode = UPDATABLE_FIELDS[name]
            assignments.append(f"{column} = ?")
            params.append(encode(value))

        if not assignments:
            return self.get_by_id(entry_id)

        with self.db.transaction() as conn:
            cursor = conn.execute(f"UPDATE moods SET {', '.join(assignments)} WHERE id = ?", params + [entry_id])
            if cursor.rowcount == 0:
                return None
            if "emotions" in changes:
                self.catalog.link_entry(conn, entry_id, coerce_emotions(changes["emotions"]))

        return self.get_by_id(entry_id)

    def get_by_id(self, entry_id: int) -> Optional[MoodEntry]:
        return self._fetch(self.db.connection(), entry_id)

    def get_all(self) -> List[MoodEntry]:
        rows = self.db.connection().execute("SELECT * FROM moods ORDER BY timestamp DESC").fetchall()
        return [row_to_entry(row) for row in rows]

    def get_in_range(self, start: int, end: int) -> List[MoodEntry]:
        rows = self.db.connection().execute(
            "SELECT * FROM moods WHERE timestamp >= ? AND timestamp <= ? ORDER BY timestamp DESC",
            (start, end),
        ).fetchall()
        return [row_to_entry(row) for row in rows]

    def get_within_range(self, date_range: MoodDateRange = None) -> List[MoodEntry]:
        """Entries inside a preset or explicit range; no range means all entries"""
        start, end = resolve_date_range(date_range, self.timezone_name)
        conditions = []
        params = []

        if start is not None:
            conditions.append("timestamp >= ?")
            params.append(start)
        if end is not None:
            conditions.append("timestamp <= ?")
            params.append(end)

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        rows = self.db.connection().execute(
            f"SELECT * FROM moods {where_clause} ORDER BY timestamp DESC", params
        ).fetchall()
        return [row_to_entry(row) for row in rows]

    def get_paginated(self, limit: int, offset: int = 0) -> PaginatedResult:
        if limit < 0 or offset < 0:
            raise ValueError("limit and offset must be non-negative")

        conn = self.db.connection()
        rows = conn.execute(
            "SELECT * FROM moods ORDER BY timestamp DESC LIMIT ? OFFSET ?", (limit, offset)
        ).fetchall()
        total = conn.execute("SELECT COUNT(*) FROM moods").fetchone()[0]
        entries = [row_to_entry(row) for row in rows]

        return PaginatedResult(entries=entries, total=total, has_more=offset + len(entries) < total)

    def get_by_emotion(self, name: str) -> List[MoodEntry]:
        """Entries linked to a catalog emotion through the junction table"""
        rows = self.db.connection().execute("""
            SELECT m.*
            FROM moods m
            JOIN mood_emotions me ON me.mood_id = m.id
            JOIN emotions e ON e.id = me.emotion_id
            WHERE e.name = ?
            ORDER BY m.timestamp DESC
        """, (name.strip(),)).fetchall()
        return [row_to_entry(row) for row in rows]

    def delete(self, entry_id: int) -> int:
        # mood_emotions rows go with it via ON DELETE CASCADE
        cursor = self.db.connection().execute("DELETE FROM moods WHERE id = ?", (entry_id,))
        return cursor.rowcount

    def count(self) -> int:
        return self.db.connection().execute("SELECT COUNT(*) FROM moods").fetchone()[0]

    def logged_today(self, timezone_name: str = None) -> bool:
        start, end = local_day_bounds(timezone_name or self.timezone_name)
        row = self.db.connection().execute(
            "SELECT COUNT(*) FROM moods WHERE timestamp >= ? AND timestamp <= ?", (start, end)
        ).fetchone()
        return row[0] > 0

    def _rewrite_snapshots(self, conn: sqlite3.Connection,
                           transform: Callable[[List[Emotion]], Optional[List[Emotion]]],
                           relink: bool) -> int:
        """
        Scan every entry's emotion blob; transform returns the new list, or
        None when the entry is unaffected. Returns the number of rows rewritten.
        """
        updated = 0
        rows = conn.execute("SELECT id, emotions FROM moods").fetchall()

        for row in rows:
            items = load_json_list(row["emotions"])
            if not items:
                continue

            current = [e for e in map(parse_legacy_emotion_item, items) if e is not None]
            rewritten = transform(current)
            if rewritten is None:
                continue

            conn.execute("UPDATE moods SET emotions = ? WHERE id = ?", (serialize_emotions(rewritten), row["id"]))
            if relink:
                self.catalog.link_entry(conn, row["id"], rewritten)
            updated += 1

        return updated

    def recategorize_everywhere(self, name: str, category: str) -> Dict[str, int]:
        """Change an emotion's category in every entry snapshot and in the catalog"""
        target = validate_emotion(Emotion(name, category))

        def apply(emotions: List[Emotion]) -> Optional[List[Emotion]]:
            changed = any(e.key == target.key and e.category != target.category for e in emotions)
            if not changed:
                return None
            return [Emotion(e.name, target.category) if e.key == target.key else e for e in emotions]

        with self.db.transaction() as conn:
            updated = self._rewrite_snapshots(conn, apply, relink=False)
            self.catalog.upsert_category(target.name, target.category, conn)

        logger.info(f"🎨 Recategorized '{target.name}' as {target.category} in {updated} entries")
        return {"updated": updated}

    def remove_everywhere(self, name: str) -> Dict[str, int]:
        """Drop an emotion from every entry snapshot, re-link those entries, then delete it from the catalog"""
        key = name.strip().lower()

        def apply(emotions: List[Emotion]) -> Optional[List[Emotion]]:
            remaining = [e for e in emotions if e.key != key]
            return remaining if len(remaining) != len(emotions) else None

        with self.db.transaction() as conn:
            updated = self._rewrite_snapshots(conn, apply, relink=True)
            self.catalog.delete(name, conn)

        logger.info(f"🗑️ Removed '{name}' from {updated} entries and the catalog")
        return {"updated": updated}

    def rename_everywhere(self, old_name: str, new_emotion: Emotion) -> Dict[str, int]:
        """Rename/recategorize an emotion in the catalog and in every entry snapshot"""
        new_emotion = validate_emotion(new_emotion)
        old_key = old_name.strip().lower()

        def apply(emotions: List[Emotion]) -> Optional[List[Emotion]]:
            if not any(e.key == old_key for e in emotions):
                return None
            renamed = []
            seen = set()
            for emotion in emotions:
                if emotion.key == old_key:
                    emotion = new_emotion
                if emotion.key in seen:
                    continue
                seen.add(emotion.key)
                renamed.append(emotion)
            return renamed

        with self.db.transaction() as conn:
            current_id = self.catalog.find_id(conn, old_name)
            existing_id = self.catalog.find_id(conn, new_emotion.name)
            if existing_id is not None and existing_id != current_id:
                raise DuplicateEmotionError(new_emotion.name)

            self.catalog.rename(old_name, new_emotion, conn)
            updated = self._rewrite_snapshots(conn, apply, relink=True)

        logger.info(f"✏️ Renamed '{old_name}' to '{new_emotion.name}' in {updated} entries")
        return {"updated": updated}

    def emotion_names_in_use(self) -> List[str]:
        """Distinct emotion names found in entry snapshots, sorted case-insensitively"""
        seen: Dict[str, str] = {}
        rows = self.db.connection().execute("SELECT emotions FROM moods").fetchall()

        for row in rows:
            for item in load_json_list(row["emotions"]):
                emotion = parse_legacy_emotion_item(item)
                if emotion is not None and emotion.key not in seen:
                    seen[emotion.key] = emotion.name

        return sorted(seen.values(), key=str.lower)
