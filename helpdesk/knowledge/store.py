"""KnowledgeStore: aiosqlite persistence for FAQs, contacts and news.

Full-text search uses SQLite FTS5 tables kept alongside the base tables.
The index is optional: when FTS5 is not compiled in, or
``settings.fulltext_enabled`` is off, the ``search_*`` methods raise
:class:`FullTextUnavailable` and callers fall back to the ``match_*``
methods, which only need plain SQL.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from helpdesk.chat.errors import FullTextUnavailable
from helpdesk.config import settings
from helpdesk.db import fts5_available, get_connection, table_exists
from helpdesk.knowledge.models import Contact, FAQEntry, NewsItem

if TYPE_CHECKING:
    from pathlib import Path

    import aiosqlite

logger = logging.getLogger(__name__)

_CREATE_TABLES = (
    """
    CREATE TABLE IF NOT EXISTS faqs (
        id         INTEGER PRIMARY KEY AUTOINCREMENT,
        question   TEXT NOT NULL,
        answer     TEXT NOT NULL,
        category   TEXT NOT NULL,
        keywords   TEXT NOT NULL DEFAULT '[]',
        is_active  INTEGER NOT NULL DEFAULT 1,
        sort_order INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS contacts (
        id              INTEGER PRIMARY KEY AUTOINCREMENT,
        first_name      TEXT NOT NULL,
        last_name       TEXT NOT NULL,
        position        TEXT NOT NULL,
        department      TEXT NOT NULL,
        phone           TEXT NOT NULL DEFAULT '',
        phone_extension TEXT NOT NULL DEFAULT '',
        email           TEXT NOT NULL DEFAULT '',
        is_active       INTEGER NOT NULL DEFAULT 1
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS news (
        id           INTEGER PRIMARY KEY AUTOINCREMENT,
        title        TEXT NOT NULL,
        excerpt      TEXT NOT NULL DEFAULT '',
        status       TEXT NOT NULL DEFAULT 'draft',
        published_at TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_faqs_active ON faqs (is_active, category, sort_order)",
    "CREATE INDEX IF NOT EXISTS idx_news_published ON news (status, published_at)",
)

_CREATE_FTS = (
    """
    CREATE VIRTUAL TABLE IF NOT EXISTS faqs_fts
    USING fts5(question, answer, keywords, tokenize = 'porter unicode61')
    """,
    """
    CREATE VIRTUAL TABLE IF NOT EXISTS contacts_fts
    USING fts5(full_name, position, department, tokenize = 'porter unicode61')
    """,
)

_FAQ_COLUMNS = "f.id, f.question, f.answer, f.category, f.keywords, f.is_active, f.sort_order"
_CONTACT_COLUMNS = (
    "c.id, c.first_name, c.last_name, c.position, c.department, "
    "c.phone, c.phone_extension, c.email, c.is_active"
)
_NEWS_COLUMNS = "id, title, excerpt, status, published_at"

# Words too common to carry signal in a full-text query.
_STOPWORDS = frozenset({
    "a", "an", "and", "are", "at", "be", "can", "do", "does", "for", "how",
    "i", "in", "is", "me", "my", "of", "on", "or", "the", "to",
    "what", "when", "where", "who", "with", "you", "your",
})

_WORD = re.compile(r"\w+")


def build_match_query(text: str) -> str:
    """Turn free text into an FTS5 expression: quoted words OR-ed together.

    Quoting every term means user punctuation can never produce an FTS5
    syntax error. Returns an empty string when nothing searchable is left.
    """
    words = [w for w in _WORD.findall(text.lower()) if w not in _STOPWORDS]
    unique = list(dict.fromkeys(words))
    return " OR ".join(f'"{w}"' for w in unique)


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class KnowledgeStore:
    """Read access to the knowledge base for retrieval, plus seeding helpers.

    Singleton accessed via ``KnowledgeStore.get()``.  Pass an explicit
    *db_path* for test isolation and ``fulltext=False`` to simulate a
    deployment without a search index.
    """

    _instance: KnowledgeStore | None = None

    def __init__(self, db_path: Path | None = None, fulltext: bool | None = None) -> None:
        self._db_path = db_path
        self._fulltext = settings.fulltext_enabled if fulltext is None else fulltext
        self._initialised = False

    @classmethod
    def get(cls) -> KnowledgeStore:
        """Return the shared KnowledgeStore instance."""
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
            for statement in _CREATE_TABLES:
                await db.execute(statement)
            if self._fulltext:
                if await fts5_available(db):
                    for statement in _CREATE_FTS:
                        await db.execute(statement)
                else:
                    logger.warning("SQLite lacks FTS5, knowledge search uses keyword matching")
            await db.commit()
            self._initialised = True
        return db

    async def _index_ready(self, db: aiosqlite.Connection, table: str) -> bool:
        return self._fulltext and await table_exists(db, table)

    async def _index_faq(self, db: aiosqlite.Connection, faq: FAQEntry) -> None:
        if not await self._index_ready(db, "faqs_fts"):
            return
        await db.execute("DELETE FROM faqs_fts WHERE rowid = ?", (faq.id,))
        await db.execute(
            "INSERT INTO faqs_fts (rowid, question, answer, keywords) VALUES (?, ?, ?, ?)",
            (faq.id, faq.question, faq.answer, " ".join(faq.keywords)),
        )

    async def _index_contact(self, db: aiosqlite.Connection, contact: Contact) -> None:
        if not await self._index_ready(db, "contacts_fts"):
            return
        await db.execute(
            "INSERT INTO contacts_fts (rowid, full_name, position, department) VALUES (?, ?, ?, ?)",
            (contact.id, contact.full_name, contact.position, contact.department),
        )

    async def has_fulltext(self) -> bool:
        """True when both full-text indexes exist and are enabled."""
        db = await self._connect()
        try:
            return await self._index_ready(db, "faqs_fts") and await self._index_ready(
                db, "contacts_fts"
            )
        finally:
            await db.close()

    # -- FAQ retrieval ---------------------------------------------------------

    async def search_faqs(self, query: str, limit: int = 3) -> list[FAQEntry]:
        """Full-text search over active FAQs, best match first.

        Raises:
            FullTextUnavailable: No FAQ index is configured.
            aiosqlite.Error: The search itself failed.
        """
        match = build_match_query(query)
        db = await self._connect()
        try:
            if not await self._index_ready(db, "faqs_fts"):
                raise FullTextUnavailable("faqs")
            if not match:
                return []
            cursor = await db.execute(
                f"""
                SELECT {_FAQ_COLUMNS} FROM faqs f
                JOIN (SELECT rowid AS rid, rank FROM faqs_fts WHERE faqs_fts MATCH ?) m
                    ON f.id = m.rid
                WHERE f.is_active = 1
                ORDER BY m.rank
                LIMIT ?
                """,
                (match, limit),
            )
            return [FAQEntry.from_row(row) for row in await cursor.fetchall()]
        finally:
            await db.close()

    async def match_faqs(self, tokens: list[str], limit: int = 3) -> list[FAQEntry]:
        """Active FAQs whose keywords include any token, or whose question
        contains the first token (case-insensitive). Store order, unranked."""
        if not tokens:
            return []
        placeholders = ", ".join("?" for _ in tokens)
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"""
                SELECT {_FAQ_COLUMNS} FROM faqs f
                WHERE f.is_active = 1 AND (
                    EXISTS (
                        SELECT 1 FROM json_each(f.keywords) k WHERE k.value IN ({placeholders})
                    )
                    OR f.question LIKE ? ESCAPE '\\'
                )
                ORDER BY f.sort_order, f.id
                LIMIT ?
                """,
                (*tokens, _like_pattern(tokens[0]), limit),
            )
            return [FAQEntry.from_row(row) for row in await cursor.fetchall()]
        finally:
            await db.close()

    async def find_faq_by_keyword(self, keyword: str) -> FAQEntry | None:
        """First active FAQ, in store order, listing *keyword* among its keywords."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"""
                SELECT {_FAQ_COLUMNS} FROM faqs f
                WHERE f.is_active = 1 AND EXISTS (
                    SELECT 1 FROM json_each(f.keywords) WHERE json_each.value = ?
                )
                ORDER BY f.sort_order, f.id
                LIMIT 1
                """,
                (keyword.lower(),),
            )
            row = await cursor.fetchone()
            return FAQEntry.from_row(row) if row else None
        finally:
            await db.close()

    # -- Contact retrieval -----------------------------------------------------

    async def search_contacts(self, query: str, limit: int = 5) -> list[Contact]:
        """Full-text search over active contacts, best match first.

        Raises:
            FullTextUnavailable: No contact index is configured.
            aiosqlite.Error: The search itself failed.
        """
        match = build_match_query(query)
        db = await self._connect()
        try:
            if not await self._index_ready(db, "contacts_fts"):
                raise FullTextUnavailable("contacts")
            if not match:
                return []
            cursor = await db.execute(
                f"""
                SELECT {_CONTACT_COLUMNS} FROM contacts c
                JOIN (SELECT rowid AS rid, rank FROM contacts_fts WHERE contacts_fts MATCH ?) m
                    ON c.id = m.rid
                WHERE c.is_active = 1
                ORDER BY m.rank
                LIMIT ?
                """,
                (match, limit),
            )
            return [Contact.from_row(row) for row in await cursor.fetchall()]
        finally:
            await db.close()

    async def match_contacts(self, terms: list[str], limit: int = 5) -> list[Contact]:
        """Active contacts whose name, position or department contains any term."""
        if not terms:
            return []
        clause = " OR ".join(
            "(c.first_name || ' ' || c.last_name LIKE ? ESCAPE '\\'"
            " OR c.position LIKE ? ESCAPE '\\'"
            " OR c.department LIKE ? ESCAPE '\\')"
            for _ in terms
        )
        params: list[Any] = []
        for term in terms:
            pattern = _like_pattern(term)
            params.extend((pattern, pattern, pattern))
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"""
                SELECT {_CONTACT_COLUMNS} FROM contacts c
                WHERE c.is_active = 1 AND ({clause})
                ORDER BY c.last_name, c.first_name
                LIMIT ?
                """,
                (*params, limit),
            )
            return [Contact.from_row(row) for row in await cursor.fetchall()]
        finally:
            await db.close()

    # -- News retrieval --------------------------------------------------------

    async def recent_news(self, limit: int = 5) -> list[NewsItem]:
        """Most recently published items, newest first."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"""
                SELECT {_NEWS_COLUMNS} FROM news
                WHERE status = 'published'
                ORDER BY published_at DESC
                LIMIT ?
                """,
                (limit,),
            )
            return [NewsItem.from_row(row) for row in await cursor.fetchall()]
        finally:
            await db.close()

    # -- FAQ administration ----------------------------------------------------

    async def list_faqs(self, category: str | None = None) -> list[FAQEntry]:
        """Active FAQs ordered by category then manual rank."""
        sql = f"SELECT {_FAQ_COLUMNS} FROM faqs f WHERE f.is_active = 1"
        params: tuple[Any, ...] = ()
        if category:
            sql += " AND f.category = ?"
            params = (category,)
        sql += " ORDER BY f.category, f.sort_order, f.id"
        db = await self._connect()
        try:
            cursor = await db.execute(sql, params)
            return [FAQEntry.from_row(row) for row in await cursor.fetchall()]
        finally:
            await db.close()

    async def faq_categories(self) -> list[str]:
        """Distinct categories among active FAQs."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "SELECT DISTINCT category FROM faqs WHERE is_active = 1 ORDER BY category"
            )
            return [row[0] for row in await cursor.fetchall()]
        finally:
            await db.close()

    async def get_faq(self, faq_id: int) -> FAQEntry | None:
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_FAQ_COLUMNS} FROM faqs f WHERE f.id = ?", (faq_id,)
            )
            row = await cursor.fetchone()
            return FAQEntry.from_row(row) if row else None
        finally:
            await db.close()

    async def get_faq_by_question(self, question: str) -> FAQEntry | None:
        """Exact-question lookup, active or not. Used to keep seeding idempotent."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_FAQ_COLUMNS} FROM faqs f WHERE f.question = ? ORDER BY f.id LIMIT 1",
                (question.strip(),),
            )
            row = await cursor.fetchone()
            return FAQEntry.from_row(row) if row else None
        finally:
            await db.close()

    async def add_faq(self, faq: FAQEntry) -> FAQEntry:
        """Insert an FAQ and index it. Returns a copy carrying the new ID."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                """
                INSERT INTO faqs (question, answer, category, keywords, is_active, sort_order)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                faq.to_row(),
            )
            stored = faq.model_copy(update={"id": cursor.lastrowid})
            await self._index_faq(db, stored)
            await db.commit()
            logger.info("Added FAQ %d: %s", stored.id, stored.question)
            return stored
        finally:
            await db.close()

    async def update_faq(self, faq_id: int, **changes: Any) -> FAQEntry | None:
        """Apply field changes to an FAQ. Returns the updated entry, or None."""
        current = await self.get_faq(faq_id)
        if current is None:
            return None
        updated = FAQEntry.model_validate({**current.model_dump(), **changes, "id": faq_id})
        db = await self._connect()
        try:
            await db.execute(
                """
                UPDATE faqs
                SET question = ?, answer = ?, category = ?, keywords = ?,
                    is_active = ?, sort_order = ?
                WHERE id = ?
                """,
                (*updated.to_row(), faq_id),
            )
            await self._index_faq(db, updated)
            await db.commit()
            return updated
        finally:
            await db.close()

    async def delete_faq(self, faq_id: int) -> bool:
        """Delete an FAQ. Returns True if a row was removed."""
        db = await self._connect()
        try:
            cursor = await db.execute("DELETE FROM faqs WHERE id = ?", (faq_id,))
            if await self._index_ready(db, "faqs_fts"):
                await db.execute("DELETE FROM faqs_fts WHERE rowid = ?", (faq_id,))
            await db.commit()
            return cursor.rowcount > 0
        finally:
            await db.close()

    # -- Directory and news seeding --------------------------------------------

    async def add_contact(self, contact: Contact) -> Contact:
        db = await self._connect()
        try:
            cursor = await db.execute(
                """
                INSERT INTO contacts
                    (first_name, last_name, position, department,
                     phone, phone_extension, email, is_active)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    contact.first_name,
                    contact.last_name,
                    contact.position,
                    contact.department,
                    contact.phone,
                    contact.phone_extension,
                    contact.email,
                    int(contact.is_active),
                ),
            )
            stored = contact.model_copy(update={"id": cursor.lastrowid})
            await self._index_contact(db, stored)
            await db.commit()
            return stored
        finally:
            await db.close()

    async def add_news(self, item: NewsItem) -> NewsItem:
        db = await self._connect()
        try:
            cursor = await db.execute(
                "INSERT INTO news (title, excerpt, status, published_at) VALUES (?, ?, ?, ?)",
                (
                    item.title,
                    item.excerpt,
                    item.status,
                    item.published_at.isoformat() if item.published_at else None,
                ),
            )
            await db.commit()
            return item.model_copy(update={"id": cursor.lastrowid})
        finally:
            await db.close()

    async def rebuild_index(self) -> bool:
        """Repopulate both full-text indexes from the base tables.

        Returns False when full-text search is unavailable.
        """
        db = await self._connect()
        try:
            if not (
                await self._index_ready(db, "faqs_fts")
                and await self._index_ready(db, "contacts_fts")
            ):
                return False
            await db.execute("DELETE FROM faqs_fts")
            await db.execute(
                """
                INSERT INTO faqs_fts (rowid, question, answer, keywords)
                SELECT f.id, f.question, f.answer,
                       (SELECT group_concat(value, ' ') FROM json_each(f.keywords))
                FROM faqs f
                """
            )
            await db.execute("DELETE FROM contacts_fts")
            await db.execute(
                """
                INSERT INTO contacts_fts (rowid, full_name, position, department)
                SELECT id, first_name || ' ' || last_name, position, department FROM contacts
                """
            )
            await db.commit()
            logger.info("Rebuilt knowledge full-text indexes")
            return True
        finally:
            await db.close()
