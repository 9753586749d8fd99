"""Async SQLite connection helper over aiosqlite.

Every store opens a short-lived connection per operation and closes it in a
``finally`` block. The target file is ``settings.database_path`` unless a
store was constructed with an explicit path (test isolation).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import aiosqlite

from helpdesk.config import settings

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


async def get_connection(local_path_override: Path | None = None) -> aiosqlite.Connection:
    """Open a connection with WAL mode, a busy timeout and foreign keys on."""
    path = local_path_override or settings.database_path
    path.parent.mkdir(parents=True, exist_ok=True)
    db = await aiosqlite.connect(str(path))
    await db.execute("PRAGMA journal_mode=WAL")
    await db.execute("PRAGMA busy_timeout=5000")
    await db.execute("PRAGMA foreign_keys=ON")
    return db


async def table_exists(db: aiosqlite.Connection, name: str) -> bool:
    """Check ``sqlite_master`` for a table (or virtual table) by name."""
    cursor = await db.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (name,)
    )
    return await cursor.fetchone() is not None


async def fts5_available(db: aiosqlite.Connection) -> bool:
    """Return True if the linked SQLite was compiled with FTS5."""
    cursor = await db.execute("PRAGMA compile_options")
    options = {row[0] for row in await cursor.fetchall()}
    return "ENABLE_FTS5" in options
