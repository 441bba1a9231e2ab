"""
Validation for externally supplied mood entries.

A checked row is one of two variants:
  ValidRow   - sanitized values ready to be written
  InvalidRow - the row index plus one FieldError per defective field
Sanitizers here never raise; they return a safe default instead.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from models import (
    ENERGY_MAX,
    ENERGY_MIN,
    MOOD_MAX,
    MOOD_MIN,
    Emotion,
    EmotionCategory,
    MoodEntryInput,
)
from serialization import now_ms, parse_location

DEFAULT_MOOD = 5
MIN_VALID_TIMESTAMP = int(datetime(2000, 1, 1, tzinfo=timezone.utc).timestamp() * 1000)
MAX_FUTURE_TIMESTAMP_MS = 24 * 60 * 60 * 1000


@dataclass
class FieldError:
    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


@dataclass
class ValidRow:
    index: int
    value: Any


@dataclass
class InvalidRow:
    index: int
    errors: List[FieldError] = field(default_factory=list)

    @property
    def message(self) -> str:
        return f"Entry {self.index}: " + "; ".join(e.message for e in self.errors)


CheckedRow = Union[ValidRow, InvalidRow]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_valid_timestamp(value: Any) -> bool:
    if not _is_number(value) or not math.isfinite(value):
        return False
    return MIN_VALID_TIMESTAMP <= value <= now_ms() + MAX_FUTURE_TIMESTAMP_MS


def is_valid_mood_value(value: Any) -> bool:
    return _is_number(value) and float(value).is_integer() and MOOD_MIN <= value <= MOOD_MAX


def is_valid_energy_value(value: Any) -> bool:
    if value is None:
        return True
    return _is_number(value) and math.isfinite(value) and ENERGY_MIN <= value <= ENERGY_MAX


def _is_valid_emotion(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and isinstance(value.get("name"), str)
        and bool(value["name"].strip())
        and EmotionCategory.is_valid(value.get("category"))
    )


def _is_string_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def sanitize_mood_value(value: Any) -> int:
    """Non-numeric -> middle of the scale, otherwise round and clamp to 0..10"""
    if not _is_number(value) or not math.isfinite(value):
        return DEFAULT_MOOD
    return max(MOOD_MIN, min(MOOD_MAX, int(math.floor(value + 0.5))))


def sanitize_timestamp(value: Any) -> int:
    return int(value) if is_valid_timestamp(value) else now_ms()


def check_import_mood(index: int, raw: Any, enforce_range: bool) -> Optional[InvalidRow]:
    """Mood is the one field an imported row cannot do without"""
    mood = raw.get("mood") if isinstance(raw, dict) else None
    if mood is None:
        return InvalidRow(index, [FieldError("mood", "Missing mood value")])
    if enforce_range and _is_number(mood) and not MOOD_MIN <= mood <= MOOD_MAX:
        return InvalidRow(
            index, [FieldError("mood", f"Mood value {mood} is out of range ({MOOD_MIN}-{MOOD_MAX})")]
        )
    return None


def validate_mood_entry(data: Any, index: int = 0) -> CheckedRow:
    """Strictly validate a caller-supplied entry dict into a MoodEntryInput"""
    if not isinstance(data, dict):
        return InvalidRow(index, [FieldError("root", "Input must be an object")])

    errors = []
    if not is_valid_mood_value(data.get("mood")):
        errors.append(FieldError("mood", f"Mood must be an integer between {MOOD_MIN} and {MOOD_MAX}"))

    if data.get("timestamp") is not None and not is_valid_timestamp(data["timestamp"]):
        errors.append(FieldError("timestamp", "Timestamp must be a valid date between 2000 and now (+1 day)"))

    if not is_valid_energy_value(data.get("energy")):
        errors.append(FieldError("energy", f"Energy must be a number between {ENERGY_MIN} and {ENERGY_MAX}"))

    note = data.get("note")
    if note is not None and not isinstance(note, str):
        errors.append(FieldError("note", "Note must be a string"))

    emotions = data.get("emotions")
    if emotions is not None:
        if not isinstance(emotions, list):
            errors.append(FieldError("emotions", "Emotions must be an array"))
        else:
            for position, emotion in enumerate(emotions):
                if not _is_valid_emotion(emotion):
                    errors.append(FieldError(
                        f"emotions[{position}]",
                        "Each emotion must have a name and valid category (positive/negative/neutral)",
                    ))

    for key, label in (("context_tags", "Context tags"), ("photos", "Photos"), ("voice_memos", "Voice memos")):
        if data.get(key) is not None and not _is_string_list(data[key]):
            errors.append(FieldError(key, f"{label} must be an array of strings"))

    location = data.get("location")
    if location is not None and parse_location(location) is None:
        errors.append(FieldError(
            "location", "Location must have valid latitude (-90 to 90) and longitude (-180 to 180)"
        ))

    based_on = data.get("based_on_entry_id")
    if based_on is not None and not (isinstance(based_on, int) and not isinstance(based_on, bool)):
        errors.append(FieldError("based_on_entry_id", "based_on_entry_id must be an integer"))

    if errors:
        return InvalidRow(index, errors)

    return ValidRow(index, MoodEntryInput(
        mood=int(data["mood"]),
        note=note,
        timestamp=data.get("timestamp"),
        emotions=[Emotion(e["name"].strip(), e["category"]) for e in emotions or []],
        context_tags=data.get("context_tags"),
        energy=data.get("energy"),
        photos=data.get("photos"),
        location=parse_location(location) if location is not None else None,
        voice_memos=data.get("voice_memos"),
        based_on_entry_id=based_on,
    ))


def format_validation_errors(errors: List[FieldError]) -> str:
    return "; ".join(str(e) for e in errors)


def errors_as_dicts(errors: List[FieldError]) -> List[Dict[str, str]]:
    return [{"field": e.field, "message": e.message} for e in errors]
