"""Multi-source context gathering for a single user message.

Each source (FAQ, contacts, news) is an independent call that returns a
tagged :data:`Result`. Full-text search is tried first where it exists and
keyword matching takes over when the index is missing or the search fails.
:meth:`KnowledgeRetriever.gather` merges the sources and turns any failure
into an empty contribution, so one broken source never hides the others.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import aiosqlite

from helpdesk.chat.errors import Err, FullTextUnavailable, Ok, Result, SourceError
from helpdesk.knowledge.models import Contact, FAQEntry, NewsItem, RetrievalContext
from helpdesk.knowledge.store import KnowledgeStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

FAQ_LIMIT = 3
CONTACT_LIMIT = 5
NEWS_LIMIT = 5

CONTACT_TRIGGERS: tuple[str, ...] = (
    "contact", "phone", "email", "reach", "find", "who is", "number",
    "extension", "call", "manager", "director", "supervisor",
)
NEWS_TRIGGERS: tuple[str, ...] = (
    "news", "announcement", "update", "recent", "latest", "what's new", "happening",
)


def tokenize(text: str, min_length: int = 1) -> list[str]:
    """Lowercase whitespace-separated tokens at least *min_length* long."""
    return [token for token in text.lower().split() if len(token) >= min_length]


def mentions(text: str, triggers: tuple[str, ...]) -> bool:
    """True if the lowercased text contains any trigger as a substring."""
    lowered = text.lower()
    return any(trigger in lowered for trigger in triggers)


async def _attempt(call: Callable[[], Awaitable[T]], failure: SourceError) -> Result[T]:
    """Run one retrieval tier and tag its outcome."""
    try:
        return Ok(await call())
    except FullTextUnavailable as exc:
        return Err(SourceError.INDEX_UNAVAILABLE, exc.collection)
    except (aiosqlite.Error, OSError) as exc:
        return Err(failure, str(exc))


class KnowledgeRetriever:
    """Builds a :class:`RetrievalContext` from the knowledge store."""

    def __init__(self, store: KnowledgeStore | None = None) -> None:
        self._store = store or KnowledgeStore.get()

    # -- Sources ---------------------------------------------------------------

    async def faq_source(self, query: str) -> Result[list[FAQEntry]]:
        """Top FAQ matches: ranked full-text hits, else keyword/question matches."""
        ranked = await _attempt(
            lambda: self._store.search_faqs(query, limit=FAQ_LIMIT), SourceError.QUERY_FAILED
        )
        if isinstance(ranked, Ok):
            return ranked
        logger.debug("FAQ full-text search skipped (%s), using keyword match", ranked.kind.value)
        return await _attempt(
            lambda: self._store.match_faqs(tokenize(query), limit=FAQ_LIMIT),
            SourceError.STORE_FAILED,
        )

    async def contact_source(self, query: str) -> Result[list[Contact]]:
        """Directory matches, only for queries that look like a people lookup."""
        if not mentions(query, CONTACT_TRIGGERS):
            return Ok([])
        ranked = await _attempt(
            lambda: self._store.search_contacts(query, limit=CONTACT_LIMIT),
            SourceError.QUERY_FAILED,
        )
        if isinstance(ranked, Ok):
            return ranked
        logger.debug(
            "Contact full-text search skipped (%s), using substring match", ranked.kind.value
        )
        terms = [term for term in query.split() if len(term) > 2]
        return await _attempt(
            lambda: self._store.match_contacts(terms, limit=CONTACT_LIMIT),
            SourceError.STORE_FAILED,
        )

    async def news_source(self, query: str) -> Result[list[NewsItem]]:
        """Latest published news, only for queries that ask about news."""
        if not mentions(query, NEWS_TRIGGERS):
            return Ok([])
        return await _attempt(
            lambda: self._store.recent_news(limit=NEWS_LIMIT), SourceError.STORE_FAILED
        )

    # -- Merge -----------------------------------------------------------------

    async def gather(self, query: str) -> RetrievalContext:
        """Query all three sources concurrently and merge what succeeded."""
        faqs, contacts, news = await asyncio.gather(
            self.faq_source(query),
            self.contact_source(query),
            self.news_source(query),
            return_exceptions=True,
        )
        return RetrievalContext(
            faq_matches=_absorb("faq", faqs),
            contact_matches=_absorb("contacts", contacts),
            news_matches=_absorb("news", news),
        )


def _absorb(source: str, outcome: Result[list[T]] | BaseException) -> list[T]:
    """Unwrap a source result, degrading any failure to an empty list."""
    if isinstance(outcome, Ok):
        return outcome.value
    if isinstance(outcome, Err):
        logger.warning(
            "Retrieval source %s unavailable: %s %s", source, outcome.kind.value, outcome.detail
        )
        return []
    if isinstance(outcome, Exception):
        logger.error("Retrieval source %s crashed", source, exc_info=outcome)
        return []
    raise outcome
