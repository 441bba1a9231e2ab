"""
Date range resolution for mood queries and exports.
Ranges resolve to inclusive [start, end] bounds in epoch milliseconds.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Tuple

import pytz

from config import get_timezone_name

PRESET_DAYS = {
    "last_7_days": 7,
    "last_14_days": 14,
    "last_30_days": 30,
}

PRESET_ALIASES = {
    "week": "last_7_days",
    "two_weeks": "last_14_days",
    "twoWeeks": "last_14_days",
    "month": "last_30_days",
}


@dataclass
class MoodDateRange:
    """Either a named preset or explicit start/end bounds (epoch ms)"""
    preset: Optional[str] = None
    start_date: Optional[int] = None
    end_date: Optional[int] = None


def _to_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def _local_now(tz, now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(tz)
    if now.tzinfo is None:
        return tz.localize(now)
    return now.astimezone(tz)


def _local_midnight(tz, day) -> datetime:
    return tz.localize(datetime(day.year, day.month, day.day))


def local_day_bounds(timezone_name: str = None, now: datetime = None) -> Tuple[int, int]:
    """Midnight-to-midnight window of the current local day"""
    tz = pytz.timezone(timezone_name or get_timezone_name())
    local_now = _local_now(tz, now)
    start = _local_midnight(tz, local_now.date())
    next_start = _local_midnight(tz, local_now.date() + timedelta(days=1))
    return _to_ms(start), _to_ms(next_start) - 1


def normalize_preset(preset: str) -> str:
    name = PRESET_ALIASES.get(preset, preset)
    if name not in PRESET_DAYS:
        raise ValueError(f"Unsupported range preset: {preset}")
    return name


def resolve_date_range(date_range: Optional[MoodDateRange], timezone_name: str = None,
                       now: datetime = None) -> Tuple[Optional[int], Optional[int]]:
    """Resolve a range to (start_ms, end_ms); None on either side means unbounded"""
    if date_range is None:
        return None, None

    if date_range.preset:
        days = PRESET_DAYS[normalize_preset(date_range.preset)]
        tz = pytz.timezone(timezone_name or get_timezone_name())
        local_now = _local_now(tz, now)
        start = _local_midnight(tz, local_now.date() - timedelta(days=days - 1))
        return _to_ms(start), _to_ms(local_now)

    return date_range.start_date, date_range.end_date
