"""
Serialization helpers between in-memory values and the TEXT columns of the moods table.
Nothing in here touches the database, and nothing in here raises on bad input:
malformed values degrade to safe defaults (empty list, None, current time).
"""

import json
import math
import time
from datetime import date, datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Iterable, List, Optional

from models import (
    ENERGY_MAX,
    ENERGY_MIN,
    MAX_LIST_ITEMS,
    Emotion,
    EmotionCategory,
    Location,
    MoodEntry,
    MoodEntryInput,
    default_category_for,
)

EMPTY_ARRAY = "[]"

# SQLite INTEGER is a signed 64-bit value
SQLITE_INT_MIN = -(2 ** 63)
SQLITE_INT_MAX = 2 ** 63 - 1


def now_ms() -> int:
    return int(time.time() * 1000)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def serialize_array(values: Optional[Iterable[str]]) -> str:
    """Encode a string list, keeping at most the first 50 items"""
    items = list(values or [])
    if not items:
        return EMPTY_ARRAY
    return json.dumps(items[:MAX_LIST_ITEMS])


def _emotion_to_dict(emotion: Any) -> Dict[str, Any]:
    if isinstance(emotion, Emotion):
        return emotion.to_dict()
    return {"name": emotion.get("name"), "category": emotion.get("category")}


def serialize_emotions(emotions: Optional[Iterable[Any]]) -> str:
    """Encode emotions as [{name, category}], keeping at most the first 50"""
    items = list(emotions or [])
    if not items:
        return EMPTY_ARRAY
    return json.dumps([_emotion_to_dict(e) for e in items[:MAX_LIST_ITEMS]])


def load_json_list(text: Any) -> List[Any]:
    if not isinstance(text, str) or not text:
        return []
    try:
        parsed = json.loads(text)
    except (ValueError, TypeError):
        return []
    return parsed if isinstance(parsed, list) else []


def deserialize_array(text: Any) -> List[str]:
    return [item for item in load_json_list(text) if isinstance(item, str)]


def _strict_emotion_item(item: Any) -> Optional[Emotion]:
    """Bare non-empty string -> neutral; object needs a name and a known category"""
    if isinstance(item, str):
        name = item.strip()
        return Emotion(name, EmotionCategory.NEUTRAL.value) if name else None
    if isinstance(item, dict):
        name = item.get("name")
        category = item.get("category")
        if isinstance(name, str) and name.strip() and EmotionCategory.is_valid(category):
            return Emotion(name.strip(), category)
    return None


def deserialize_emotions(text: Any) -> List[Emotion]:
    emotions = []
    for item in load_json_list(text):
        emotion = _strict_emotion_item(item)
        if emotion is not None:
            emotions.append(emotion)
    return emotions


def parse_legacy_emotion_item(item: Any) -> Optional[Emotion]:
    """
    Lenient parser for emotions written by older app versions.
    A bare string takes the category of the matching default preset (else neutral);
    an object only needs a name, and a missing or unknown category becomes neutral.
    """
    if isinstance(item, str) and item.strip():
        name = item.strip()
        return Emotion(name, default_category_for(name) or EmotionCategory.NEUTRAL.value)
    if isinstance(item, dict) and item.get("name"):
        name = str(item["name"]).strip()
        if not name:
            return None
        category = item.get("category")
        if not EmotionCategory.is_valid(category):
            category = EmotionCategory.NEUTRAL.value
        return Emotion(name, category)
    return None


def unique_emotions(emotions: Iterable[Optional[Emotion]]) -> List[Emotion]:
    """Drop None and case-insensitive repeats; the first occurrence wins"""
    seen = set()
    unique = []
    for emotion in emotions:
        if emotion is None or emotion.key in seen:
            continue
        seen.add(emotion.key)
        unique.append(emotion)
    return unique


def parse_legacy_emotions(value: Any) -> List[Emotion]:
    if not isinstance(value, list):
        return []
    parsed = (parse_legacy_emotion_item(item) for item in value)
    return unique_emotions(parsed)[:MAX_LIST_ITEMS]


def _datetime_to_ms(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def _parse_date_string(text: str) -> Optional[int]:
    try:
        return _datetime_to_ms(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        pass
    try:
        return _datetime_to_ms(parsedate_to_datetime(text))
    except (TypeError, ValueError, IndexError):
        return None


def _storable_ms(value) -> Optional[int]:
    """Whole milliseconds, or None for infinities, NaN and values SQLite cannot store"""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    ms = int(value)
    return ms if SQLITE_INT_MIN <= ms <= SQLITE_INT_MAX else None


def parse_timestamp(value: Any) -> int:
    """
    Convert a date-like value to epoch milliseconds.
    Accepts datetime/date objects, finite numbers (returned as-is), numeric strings
    and ISO 8601 / RFC 2822 date strings. Anything else, including numbers outside
    the SQLite integer range, yields the current time.
    """
    if isinstance(value, datetime):
        return _datetime_to_ms(value)
    if isinstance(value, date):
        return _datetime_to_ms(datetime(value.year, value.month, value.day))
    if _is_number(value):
        ms = _storable_ms(value)
        return ms if ms is not None else now_ms()
    if isinstance(value, str):
        text = value.strip()
        if text:
            try:
                numeric = float(text)
            except ValueError:
                numeric = None
            if numeric is not None:
                ms = _storable_ms(numeric)
                return ms if ms is not None else now_ms()
            parsed = _parse_date_string(text)
            if parsed is not None:
                return parsed
    return now_ms()


def sanitize_energy(value: Any) -> Optional[int]:
    """None/non-numeric/NaN -> None, otherwise round and clamp to 0..10"""
    if not _is_number(value) or math.isnan(value):
        return None
    if math.isinf(value):
        return ENERGY_MAX if value > 0 else ENERGY_MIN
    return min(ENERGY_MAX, max(ENERGY_MIN, _round_half_up(value)))


def sanitize_imported_array(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)][:MAX_LIST_ITEMS]


def sanitize_imported_emotions(value: Any) -> List[Emotion]:
    if not isinstance(value, list):
        return []
    parsed = (_strict_emotion_item(item) for item in value)
    return unique_emotions(parsed)[:MAX_LIST_ITEMS]


def serialize_location(location: Optional[Location]) -> Optional[str]:
    if location is None:
        return None
    return json.dumps(location.to_dict())


def parse_location(value: Any) -> Optional[Location]:
    """Build a Location from a dict, or None if coordinates are missing or out of range"""
    if isinstance(value, Location):
        return value
    if not isinstance(value, dict):
        return None
    latitude = value.get("latitude")
    longitude = value.get("longitude")
    if not _is_number(latitude) or not _is_number(longitude):
        return None
    if not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
        return None
    name = value.get("name")
    return Location(latitude, longitude, name if isinstance(name, str) else None)


def deserialize_location(text: Any) -> Optional[Location]:
    if not isinstance(text, str) or not text:
        return None
    try:
        return parse_location(json.loads(text))
    except (ValueError, TypeError):
        return None


def normalize_input(entry: MoodEntryInput) -> Dict[str, Any]:
    """Fill defaults for omitted fields and apply the 50-item cap to every list"""
    return {
        "mood": entry.mood,
        "note": entry.note,
        "timestamp": parse_timestamp(entry.timestamp) if entry.timestamp is not None else now_ms(),
        "emotions": list(entry.emotions or [])[:MAX_LIST_ITEMS],
        "context_tags": list(entry.context_tags or [])[:MAX_LIST_ITEMS],
        "energy": sanitize_energy(entry.energy),
        "photos": list(entry.photos or [])[:MAX_LIST_ITEMS],
        "location": entry.location,
        "voice_memos": list(entry.voice_memos or [])[:MAX_LIST_ITEMS],
        "based_on_entry_id": entry.based_on_entry_id,
    }


def row_to_entry(row) -> MoodEntry:
    """Convert a moods table row into a MoodEntry"""
    energy = row["energy"]
    return MoodEntry(
        id=row["id"],
        mood=row["mood"],
        note=row["note"],
        timestamp=parse_timestamp(row["timestamp"]),
        emotions=deserialize_emotions(row["emotions"]),
        context_tags=deserialize_array(row["context_tags"]),
        energy=None if energy is None else int(energy),
        photos=deserialize_array(row["photos_json"]),
        location=deserialize_location(row["location_json"]),
        voice_memos=deserialize_array(row["voice_memos_json"]),
        based_on_entry_id=row["based_on_entry_id"],
    )
