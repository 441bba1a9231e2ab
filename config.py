"""
Runtime configuration for the mood journal backend.
All settings come from environment variables so the same code runs locally and on Railway.
"""

import os
import logging
from pathlib import Path

import pytz

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_FILE = "moods.db"
RAILWAY_DATA_DIR = "/app/data"


def is_railway_environment() -> bool:
    """Check if running on Railway - determines storage strategy"""
    return bool(os.getenv("RAILWAY_ENVIRONMENT") or os.getenv("RAILWAY_PROJECT_ID") or os.getenv("RAILWAY_DEPLOYMENT_ID"))


def get_database_path() -> str:
    """Get appropriate database path for environment"""
    explicit = os.getenv("DATABASE_PATH")
    if explicit:
        return explicit
    if is_railway_environment():
        return f"{RAILWAY_DATA_DIR}/{DEFAULT_DATABASE_FILE}"
    return DEFAULT_DATABASE_FILE


def ensure_data_directory(db_path: str) -> None:
    """Ensure the directory holding the database file exists"""
    parent = Path(db_path).parent
    if str(parent) not in ("", "."):
        parent.mkdir(parents=True, exist_ok=True)


def get_timezone_name() -> str:
    """Zone used for 'today' and preset ranges when the caller gives none"""
    name = os.getenv("MOOD_TIMEZONE", "UTC")
    try:
        pytz.timezone(name)
    except pytz.exceptions.UnknownTimeZoneError:
        logger.warning(f"Unknown MOOD_TIMEZONE '{name}', falling back to UTC")
        return "UTC"
    return name


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()


def get_server_settings() -> dict:
    """Host/port/reload settings for uvicorn"""
    return {
        "host": os.getenv("HOST", "0.0.0.0"),
        "port": int(os.getenv("PORT", "8000")),
        "reload": os.getenv("ENVIRONMENT") == "development",
    }


def get_storage_info() -> dict:
    """Get storage configuration info"""
    path = get_database_path()
    return {
        "platform": "Railway" if is_railway_environment() else "Local",
        "storage": "Persistent Volume" if is_railway_environment() else "Local File",
        "path": path,
        "timezone": get_timezone_name(),
    }
