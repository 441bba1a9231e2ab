"""
Value types for mood entries and the emotion catalog.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import List, Optional, Dict, Any

MOOD_MIN = 0
MOOD_MAX = 10
ENERGY_MIN = 0
ENERGY_MAX = 10

# Every list stored on an entry is capped at this many items
MAX_LIST_ITEMS = 50


class EmotionCategory(Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]

    @classmethod
    def is_valid(cls, value: Any) -> bool:
        return isinstance(value, str) and value in cls.values()


@dataclass(frozen=True)
class Emotion:
    name: str
    category: str = EmotionCategory.NEUTRAL.value

    @property
    def key(self) -> str:
        """Identity within the catalog: the trimmed, lower-cased name"""
        return self.name.strip().lower()

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "category": self.category}


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float
    name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"latitude": self.latitude, "longitude": self.longitude}
        if self.name is not None:
            data["name"] = self.name
        return data


@dataclass
class MoodEntryInput:
    """Caller-supplied fields for a new entry; None means 'not provided'"""
    mood: int
    note: Optional[str] = None
    timestamp: Optional[Any] = None
    emotions: Optional[List[Emotion]] = None
    context_tags: Optional[List[str]] = None
    energy: Optional[float] = None
    photos: Optional[List[str]] = None
    location: Optional[Location] = None
    voice_memos: Optional[List[str]] = None
    based_on_entry_id: Optional[int] = None


@dataclass
class MoodEntry:
    id: int
    mood: int
    note: Optional[str]
    timestamp: int
    emotions: List[Emotion] = field(default_factory=list)
    context_tags: List[str] = field(default_factory=list)
    energy: Optional[int] = None
    photos: List[str] = field(default_factory=list)
    location: Optional[Location] = None
    voice_memos: List[str] = field(default_factory=list)
    based_on_entry_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["location"] = self.location.to_dict() if self.location else None
        return data


# Presets offered to new users; legacy bare-string emotions pick up these categories
DEFAULT_EMOTIONS = [
    Emotion("Happy", EmotionCategory.POSITIVE.value),
    Emotion("Calm", EmotionCategory.POSITIVE.value),
    Emotion("Excited", EmotionCategory.POSITIVE.value),
    Emotion("Anxious", EmotionCategory.NEGATIVE.value),
    Emotion("Sad", EmotionCategory.NEGATIVE.value),
    Emotion("Stressed", EmotionCategory.NEGATIVE.value),
]


def default_category_for(name: str) -> Optional[str]:
    """Category of the matching default preset, if any"""
    for emotion in DEFAULT_EMOTIONS:
        if emotion.name == name:
            return emotion.category
    return None
