"""
JSON export and import of mood entries.

Export wire format (also the current import format) - a JSON array of:
    {"timestamp": int ms, "mood": int, "emotions": [{"name", "category"}],
     "context": [str], "energy": int|null, "notes": str|null}

Two importers share the parse-then-transaction shape:
  import_current - strict rows: missing or out-of-range mood is skipped and reported
  import_legacy  - older backups: bare-string emotions, ISO timestamps, mood clamped
An unparseable or non-array payload fails before any row is written; a
storage error mid-import rolls back every row processed so far.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from date_ranges import MoodDateRange
from mood_repository import MoodRepository
from serialization import (
    parse_legacy_emotions,
    parse_timestamp,
    sanitize_energy,
    sanitize_imported_array,
    sanitize_imported_emotions,
)
from validation import CheckedRow, InvalidRow, ValidRow, check_import_mood, sanitize_mood_value

logger = logging.getLogger(__name__)


class ImportFormatError(ValueError):
    """The payload as a whole is unusable (bad JSON or not an array)"""


@dataclass
class ImportResult:
    imported: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"imported": self.imported, "skipped": self.skipped, "errors": list(self.errors)}


def entry_to_export(entry) -> Dict[str, Any]:
    return {
        "timestamp": entry.timestamp,
        "mood": entry.mood,
        "emotions": [e.to_dict() for e in entry.emotions],
        "context": list(entry.context_tags),
        "energy": entry.energy,
        "notes": entry.note,
    }


def export_moods(repository: MoodRepository, date_range: Optional[MoodDateRange] = None) -> str:
    """Serialize entries (newest first) to the export wire format"""
    entries = repository.get_within_range(date_range)
    logger.info(f"📤 Exporting {len(entries)} mood entries")
    return json.dumps([entry_to_export(entry) for entry in entries])


def _parse_payload(json_text: str) -> List[Any]:
    try:
        parsed = json.loads(json_text)
    except (TypeError, ValueError):
        raise ImportFormatError("Invalid JSON format")
    if not isinstance(parsed, list):
        raise ImportFormatError("Import data must be an array")
    return parsed


def _first_present(raw: Dict[str, Any], primary: str, fallback: str) -> Any:
    value = raw.get(primary)
    return value if value is not None else raw.get(fallback)


def _sanitize_note(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    return str(value)


def _common_fields(raw: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "note": _sanitize_note(_first_present(raw, "notes", "note")),
        "timestamp": parse_timestamp(raw.get("timestamp")),
        "context_tags": sanitize_imported_array(_first_present(raw, "contextTags", "context")),
        "energy": sanitize_energy(raw.get("energy")),
    }


def check_current_row(index: int, raw: Any) -> CheckedRow:
    invalid = check_import_mood(index, raw, enforce_range=True)
    if invalid is not None:
        return invalid

    fields = _common_fields(raw)
    fields["mood"] = sanitize_mood_value(raw["mood"])
    fields["emotions"] = sanitize_imported_emotions(raw.get("emotions"))
    return ValidRow(index, fields)


def check_legacy_row(index: int, raw: Any) -> CheckedRow:
    invalid = check_import_mood(index, raw, enforce_range=False)
    if invalid is not None:
        return invalid

    fields = _common_fields(raw)
    fields["mood"] = sanitize_mood_value(raw["mood"])
    fields["emotions"] = parse_legacy_emotions(raw.get("emotions"))
    return ValidRow(index, fields)


def _run_import(repository: MoodRepository, json_text: str,
                check: Callable[[int, Any], CheckedRow], label: str) -> ImportResult:
    rows = _parse_payload(json_text)
    result = ImportResult()

    with repository.db.transaction() as conn:
        for index, raw in enumerate(rows):
            checked = check(index, raw)
            if isinstance(checked, InvalidRow):
                result.skipped += 1
                result.errors.append(checked.message)
                continue

            repository.write_entry(conn, checked.value)
            result.imported += 1

    logger.info(f"📥 {label} import finished: {result.imported} imported, {result.skipped} skipped")
    return result


def import_current(repository: MoodRepository, json_text: str) -> ImportResult:
    return _run_import(repository, json_text, check_current_row, "Current-format")


def import_legacy(repository: MoodRepository, json_text: str) -> ImportResult:
    return _run_import(repository, json_text, check_legacy_row, "Legacy backup")
