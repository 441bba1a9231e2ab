import logging
import sqlite3
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel

from config import get_log_level, get_storage_info
from database import get_database, reset_database
from date_ranges import MoodDateRange
from emotion_catalog import DuplicateEmotionError, EmotionCatalog
from import_export import ImportFormatError, export_moods, import_current, import_legacy
from models import Emotion
from mood_repository import MoodRepository
from schema_migration import prepare_database
from validation import InvalidRow, errors_as_dicts, validate_mood_entry

logging.basicConfig(level=get_log_level())
logger = logging.getLogger(__name__)

app = FastAPI(title="Mood Journal Backend")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Pydantic models
class EmotionModel(BaseModel):
    name: str
    category: str = "neutral"


class LocationModel(BaseModel):
    latitude: float
    longitude: float
    name: Optional[str] = None


class MoodUpdateRequest(BaseModel):
    """Only the fields present in the request body are written"""
    mood: Optional[int] = None
    note: Optional[str] = None
    timestamp: Optional[Any] = None
    emotions: Optional[List[EmotionModel]] = None
    context_tags: Optional[List[str]] = None
    energy: Optional[float] = None
    photos: Optional[List[str]] = None
    location: Optional[LocationModel] = None
    voice_memos: Optional[List[str]] = None
    based_on_entry_id: Optional[int] = None


class CategoryUpdateRequest(BaseModel):
    category: str


def get_repository() -> MoodRepository:
    return MoodRepository(get_database())


def get_catalog() -> EmotionCatalog:
    return EmotionCatalog(get_database())


@app.on_event("startup")
async def startup_event():
    logger.info("🚀 Starting Mood Journal Backend...")
    storage = get_storage_info()
    logger.info(f"📍 Environment: {storage['platform']}")
    logger.info(f"💾 Database path: {storage['path']}")
    prepare_database(get_database())
    logger.info("✅ Mood Journal Backend ready")


@app.on_event("shutdown")
async def shutdown_event():
    reset_database()


@app.get("/health")
async def health_check():
    try:
        return {
            "status": "healthy",
            "storage": get_storage_info(),
            "mood_count": get_repository().count(),
        }
    except sqlite3.Error as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=503, detail=f"Database unavailable: {str(e)}")


@app.get("/api/moods")
async def get_moods(preset: Optional[str] = None, start_date: Optional[int] = None,
                    end_date: Optional[int] = None):
    """All moods, newest first; optionally limited to a preset or explicit range"""
    try:
        date_range = None
        if preset or start_date is not None or end_date is not None:
            date_range = MoodDateRange(preset=preset, start_date=start_date, end_date=end_date)
        entries = get_repository().get_within_range(date_range)
        return {"status": "success", "moods": [e.to_dict() for e in entries], "count": len(entries)}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Get moods failed: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to get moods: {str(e)}")


@app.post("/api/moods", status_code=201)
async def create_mood(payload: Dict[str, Any]):
    checked = validate_mood_entry(payload)
    if isinstance(checked, InvalidRow):
        raise HTTPException(status_code=422, detail=errors_as_dicts(checked.errors))

    try:
        entry = get_repository().insert_entry(checked.value)
        logger.info(f"📝 Saved mood {entry.id} ({entry.mood}/10)")
        return {"status": "success", "mood": entry.to_dict()}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Save mood failed: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to save mood: {str(e)}")


@app.get("/api/moods/page")
async def get_moods_page(limit: int = 50, offset: int = 0):
    try:
        page = get_repository().get_paginated(limit, offset)
        return {
            "status": "success",
            "moods": [e.to_dict() for e in page.entries],
            "total": page.total,
            "has_more": page.has_more,
        }
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/api/moods/count")
async def get_mood_count():
    return {"count": get_repository().count()}


@app.get("/api/moods/logged-today")
async def get_logged_today(timezone: Optional[str] = None):
    return {"logged_today": get_repository().logged_today(timezone)}


@app.get("/api/moods/{entry_id}")
async def get_mood(entry_id: int):
    entry = get_repository().get_by_id(entry_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Mood not found")
    return {"status": "success", "mood": entry.to_dict()}


@app.patch("/api/moods/{entry_id}")
async def update_mood(entry_id: int, request: MoodUpdateRequest):
    changes = request.model_dump(exclude_unset=True)
    try:
        entry = get_repository().update(entry_id, **changes)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Update mood failed: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to update mood: {str(e)}")

    if entry is None:
        raise HTTPException(status_code=404, detail="Mood not found")
    logger.info(f"✏️ Updated mood {entry_id}: {', '.join(changes) or 'no changes'}")
    return {"status": "success", "mood": entry.to_dict()}


@app.delete("/api/moods/{entry_id}")
async def delete_mood(entry_id: int):
    deleted = get_repository().delete(entry_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Mood not found")
    logger.info(f"🗑️ Deleted mood {entry_id}")
    return {"status": "success", "deleted": deleted}


@app.get("/api/emotions")
async def get_emotions():
    emotions = get_catalog().get_all()
    return {"status": "success", "emotions": [e.to_dict() for e in emotions], "count": len(emotions)}


@app.post("/api/emotions", status_code=201)
async def create_emotion(emotion: EmotionModel):
    try:
        emotion_id = get_catalog().add(Emotion(emotion.name, emotion.category))
        return {"status": "success", "message": f"Emotion '{emotion.name.strip()}' created", "emotion_id": emotion_id}
    except DuplicateEmotionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/api/emotions/in-use")
async def get_emotions_in_use():
    """Names found in mood history, including ones never added to the catalog"""
    return {"status": "success", "names": get_repository().emotion_names_in_use()}


@app.get("/api/emotions/{name}/moods")
async def get_moods_for_emotion(name: str):
    entries = get_repository().get_by_emotion(name)
    return {"status": "success", "moods": [e.to_dict() for e in entries], "count": len(entries)}


@app.put("/api/emotions/{name}")
async def rename_emotion(name: str, emotion: EmotionModel):
    try:
        result = get_repository().rename_everywhere(name, Emotion(emotion.name, emotion.category))
        return {"status": "success", **result}
    except DuplicateEmotionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.put("/api/emotions/{name}/category")
async def recategorize_emotion(name: str, request: CategoryUpdateRequest):
    try:
        result = get_repository().recategorize_everywhere(name, request.category)
        return {"status": "success", **result}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.delete("/api/emotions/{name}")
async def delete_emotion(name: str):
    result = get_repository().remove_everywhere(name)
    return {"status": "success", **result}


@app.get("/api/export")
async def export_data(preset: Optional[str] = None, start_date: Optional[int] = None,
                      end_date: Optional[int] = None):
    try:
        date_range = None
        if preset or start_date is not None or end_date is not None:
            date_range = MoodDateRange(preset=preset, start_date=start_date, end_date=end_date)
        payload = export_moods(get_repository(), date_range)
        return Response(content=payload, media_type="application/json")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


async def _read_text(request: Request) -> str:
    body = await request.body()
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="Import data must be UTF-8 encoded")


@app.post("/api/import")
async def import_data(request: Request):
    text = await _read_text(request)
    try:
        result = import_current(get_repository(), text)
        return {"status": "success", **result.to_dict()}
    except ImportFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Import failed: {e}")
        raise HTTPException(status_code=500, detail=f"Import failed: {str(e)}")


@app.post("/api/import/legacy")
async def import_legacy_data(request: Request):
    text = await _read_text(request)
    try:
        result = import_legacy(get_repository(), text)
        return {"status": "success", **result.to_dict()}
    except ImportFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Backup import failed: {e}")
        raise HTTPException(status_code=500, detail=f"Backup import failed: {str(e)}")
