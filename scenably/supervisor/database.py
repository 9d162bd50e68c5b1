"""Database initialization and connection helpers for the scenario service."""

import logging
from pathlib import Path
from typing import Optional

import aiosqlite

from .migrations import run_migrations
from .settings import DEFAULT_DB_PATH

logger = logging.getLogger("scenably.supervisor.database")

DB_PATH = DEFAULT_DB_PATH


async def get_db_path(db_path: Optional[Path] = None) -> Path:
    """Ensure the directory exists and return the DB path."""
    path = Path(db_path) if db_path is not None else DB_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


async def init_db(db_path: Optional[Path] = None):
    """Create or upgrade the schema."""
    path = await get_db_path(db_path)
    logger.info("Initializing scenario database at %s", path)
    async with aiosqlite.connect(path) as db:
        await db.execute("PRAGMA foreign_keys = ON")
        await run_migrations(db)


async def get_db(db_path: Optional[Path] = None):
    """Yield a connection with dict-style rows."""
    path = await get_db_path(db_path)
    async with aiosqlite.connect(path) as db:
        db.row_factory = aiosqlite.Row
        yield db
