"""ChatStore: aiosqlite persistence for chat sessions and their messages."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from helpdesk.chat.errors import SessionNotFound
from helpdesk.chat.models import ROLES, ChatMessage, ChatSession
from helpdesk.config import settings
from helpdesk.db import get_connection

if TYPE_CHECKING:
    from pathlib import Path

    import aiosqlite

logger = logging.getLogger(__name__)

_CREATE_SESSIONS = """
CREATE TABLE IF NOT EXISTS chat_sessions (
    session_id    TEXT PRIMARY KEY,
    user_id       TEXT,
    message_count INTEGER NOT NULL DEFAULT 0,
    last_activity TEXT NOT NULL,
    created_at    TEXT NOT NULL
)
"""

_CREATE_MESSAGES = """
CREATE TABLE IF NOT EXISTS chat_messages (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id TEXT NOT NULL REFERENCES chat_sessions(session_id) ON DELETE CASCADE,
    role       TEXT NOT NULL CHECK (role IN ('user', 'assistant', 'system')),
    content    TEXT NOT NULL,
    created_at TEXT NOT NULL
)
"""

_CREATE_INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_chat_messages_session ON chat_messages (session_id, id)",
    "CREATE INDEX IF NOT EXISTS idx_chat_sessions_activity ON chat_sessions (last_activity)",
)

_SESSION_COLUMNS = "session_id, user_id, message_count, last_activity, created_at"
_MESSAGE_COLUMNS = "id, session_id, role, content, created_at"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ChatStore:
    """Persists sessions and messages in SQLite.

    Singleton accessed via ``ChatStore.get()``.  Pass an explicit *db_path*
    for test isolation (e.g. ``tmp_path / "test.db"``) and a *clock* to
    control retention in tests.

    Sessions idle longer than the retention window are treated as gone:
    reads report them as not found, ``get_or_create`` starts them over, and
    :meth:`purge_expired` deletes them for good.
    """

    _instance: ChatStore | None = None

    def __init__(
        self,
        db_path: Path | None = None,
        retention: timedelta | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._db_path = db_path
        self.retention = retention or timedelta(hours=settings.session_retention_hours)
        self._clock = clock
        self._initialised = False

    @classmethod
    def get(cls) -> ChatStore:
        """Return the shared ChatStore instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    # -- Internal helpers ------------------------------------------------------

    async def _connect(self) -> aiosqlite.Connection:
        db = await get_connection(local_path_override=self._db_path)
        if not self._initialised:
            await db.execute(_CREATE_SESSIONS)
            await db.execute(_CREATE_MESSAGES)
            for statement in _CREATE_INDEXES:
                await db.execute(statement)
            await db.commit()
            self._initialised = True
        return db

    async def _fetch_session(self, db: aiosqlite.Connection, session_id: str) -> ChatSession | None:
        cursor = await db.execute(
            f"SELECT {_SESSION_COLUMNS} FROM chat_sessions WHERE session_id = ?",
            (session_id,),
        )
        row = await cursor.fetchone()
        return ChatSession.from_row(row) if row else None

    async def _live_session(self, db: aiosqlite.Connection, session_id: str) -> ChatSession:
        """Fetch a session that exists and is inside retention, else raise."""
        session = await self._fetch_session(db, session_id)
        if session is None or session.expired(self.retention, self._clock()):
            raise SessionNotFound(session_id)
        return session

    # -- Sessions --------------------------------------------------------------

    async def get_or_create(self, session_id: str, user_id: str | None = None) -> ChatSession:
        """Return the session, creating it if absent and refreshing its activity.

        Creation goes through the primary key, so concurrent first calls for
        the same ID converge on a single row.
        """
        now = self._clock()
        db = await self._connect()
        try:
            existing = await self._fetch_session(db, session_id)
            if existing is not None and existing.expired(self.retention, now):
                await db.execute("DELETE FROM chat_sessions WHERE session_id = ?", (session_id,))
                logger.info("Session %s expired, starting over", session_id)

            stamp = now.isoformat(timespec="microseconds")
            await db.execute(
                f"""
                INSERT INTO chat_sessions ({_SESSION_COLUMNS})
                VALUES (?, ?, 0, ?, ?)
                ON CONFLICT(session_id) DO UPDATE SET
                    last_activity = excluded.last_activity,
                    user_id = COALESCE(chat_sessions.user_id, excluded.user_id)
                """,
                (session_id, user_id, stamp, stamp),
            )
            await db.commit()
            session = await self._fetch_session(db, session_id)
            if session is None:  # pragma: no cover
                raise SessionNotFound(session_id)
            return session
        finally:
            await db.close()

    async def get_session(self, session_id: str) -> ChatSession | None:
        """Fetch a live session, or None if missing or expired."""
        db = await self._connect()
        try:
            session = await self._fetch_session(db, session_id)
            if session is None or session.expired(self.retention, self._clock()):
                return None
            return session
        finally:
            await db.close()

    async def purge_expired(self, now: datetime | None = None) -> int:
        """Delete sessions idle past retention, messages included. Returns the count."""
        cutoff = ((now or self._clock()) - self.retention).isoformat(timespec="microseconds")
        db = await self._connect()
        try:
            cursor = await db.execute(
                "DELETE FROM chat_sessions WHERE last_activity < ?", (cutoff,)
            )
            await db.commit()
            removed = cursor.rowcount
            if removed:
                logger.info("Purged %d expired chat session(s)", removed)
            return removed
        finally:
            await db.close()

    # -- Messages --------------------------------------------------------------

    async def append(self, session_id: str, role: str, content: str) -> ChatMessage:
        """Store one message and bump the session's count and activity."""
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role!r}")

        stamp = self._clock().isoformat(timespec="microseconds")
        db = await self._connect()
        try:
            await self._live_session(db, session_id)
            cursor = await db.execute(
                """
                INSERT INTO chat_messages (session_id, role, content, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (session_id, role, content, stamp),
            )
            message_id = cursor.lastrowid
            await db.execute(
                """
                UPDATE chat_sessions
                SET message_count = message_count + 1, last_activity = ?
                WHERE session_id = ?
                """,
                (stamp, session_id),
            )
            await db.commit()
            return ChatMessage(
                id=message_id,
                session_id=session_id,
                role=role,
                content=content,
                created_at=stamp,
            )
        finally:
            await db.close()

    async def history(self, session_id: str, limit: int = 20) -> list[ChatMessage]:
        """Return the *limit* most recent messages, oldest first."""
        db = await self._connect()
        try:
            await self._live_session(db, session_id)
            cursor = await db.execute(
                f"""
                SELECT {_MESSAGE_COLUMNS} FROM chat_messages
                WHERE session_id = ?
                ORDER BY created_at DESC, id DESC
                LIMIT ?
                """,
                (session_id, limit),
            )
            rows = await cursor.fetchall()
            return [ChatMessage.from_row(row) for row in reversed(rows)]
        finally:
            await db.close()

    async def clear(self, session_id: str) -> int:
        """Delete every message in the session and reset its count.

        The session row itself survives. Returns the number of messages removed.
        """
        db = await self._connect()
        try:
            await self._live_session(db, session_id)
            cursor = await db.execute(
                "DELETE FROM chat_messages WHERE session_id = ?", (session_id,)
            )
            removed = cursor.rowcount
            await db.execute(
                "UPDATE chat_sessions SET message_count = 0 WHERE session_id = ?",
                (session_id,),
            )
            await db.commit()
            logger.info("Cleared %d message(s) from session %s", removed, session_id)
            return removed
        finally:
            await db.close()
