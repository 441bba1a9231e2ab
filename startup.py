#!/usr/bin/env python3
"""
Startup Script for Mood Journal Backend
Ensures database schema is correct before starting the FastAPI server.
"""

import os
import sys
import logging
import sqlite3
import subprocess
from pathlib import Path

# Add the current directory to Python path for imports
sys.path.insert(0, str(Path(__file__).parent))

from config import get_database_path, get_log_level, get_server_settings
from database import Database
from schema_migration import check_database_schema, prepare_database

# Setup logging
logging.basicConfig(level=get_log_level())
logger = logging.getLogger(__name__)


def ensure_database_ready(db_path: str = None) -> bool:
    """Ensure the database is ready before starting the server"""
    db_path = db_path or get_database_path()

    if os.path.exists(db_path):
        logger.info(f"🔍 Checking database schema at: {db_path}")
        schema_info = check_database_schema(db_path)
        if schema_info["needs_migration"]:
            logger.info("🔧 Database needs migration, fixing schema...")
            logger.info(f"  - Missing columns: {schema_info['missing_columns']}")
            logger.info(f"  - Missing tables: {schema_info['missing_tables']}")
    else:
        logger.info(f"📁 Database does not exist at {db_path}, creating it")

    db = Database(db_path)
    try:
        result = prepare_database(db)
    except sqlite3.Error as e:
        logger.error(f"💥 Migration failed: {e}")
        return False
    finally:
        db.close()

    logger.info("🎉 Database ready")
    logger.info(f"  - Columns added: {result['columns_added']}")
    logger.info(f"  - Emotion blobs upgraded: {result['categories']['migrated']}")
    logger.info(f"  - Moods linked to emotions: {result['links']['migrated']}")
    return True


def build_server_command(settings: dict) -> list:
    return [
        'uvicorn',
        'main:app',
        '--host', settings['host'],
        '--port', str(settings['port']),
        '--reload' if settings['reload'] else '--no-reload',
    ]


def start_server():
    """Start the FastAPI server"""
    logger.info("🚀 Starting FastAPI server...")

    cmd = build_server_command(get_server_settings())
    logger.info(f"📡 Server command: {' '.join(cmd)}")

    try:
        subprocess.run(cmd, check=True)
    except subprocess.CalledProcessError as e:
        logger.error(f"❌ Server failed to start: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("🛑 Server stopped by user")
        sys.exit(0)


def main():
    """Main startup function"""
    logger.info("🎯 Mood Journal Backend Startup")

    if not ensure_database_ready():
        logger.error("❌ Database preparation failed, cannot start server")
        sys.exit(1)

    start_server()


if __name__ == "__main__":
    main()
