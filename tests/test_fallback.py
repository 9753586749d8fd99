"""Tests for the rule-based fallback responder."""

from unittest.mock import AsyncMock, patch

import aiosqlite

from helpdesk.chat.fallback import DIRECTORY_ANSWER, TOPICS, FallbackResponder, topic_answer
from helpdesk.knowledge.models import FAQEntry, RetrievalContext
from helpdesk.knowledge.store import KnowledgeStore

_TOPIC_TEXT = {name: answer for name, _, answer in TOPICS}


async def test_uses_first_retrieved_faq(knowledge: KnowledgeStore, password_faq) -> None:
    other = FAQEntry(question="Other", answer="Second best.", category="IT")
    context = RetrievalContext(faq_matches=[password_faq, other])

    answer = await FallbackResponder(knowledge).answer("How do I reset my password?", context)

    assert answer == "Call IT at ext 100."


async def test_keyword_lookup_when_context_empty(knowledge: KnowledgeStore) -> None:
    await knowledge.add_faq(
        FAQEntry(
            question="When is payday?",
            answer="The 25th of each month.",
            category="HR",
            keywords=["payslip", "payday"],
        )
    )

    answer = await FallbackResponder(knowledge).answer("my payslip is wrong", RetrievalContext())

    assert answer == "The 25th of each month."


async def test_keyword_lookup_skips_short_tokens(knowledge: KnowledgeStore) -> None:
    await knowledge.add_faq(
        FAQEntry(question="Bus", answer="Shuttle info.", category="Transport", keywords=["on"])
    )

    answer = await FallbackResponder(knowledge).answer("on xylophone", RetrievalContext())

    assert answer == DIRECTORY_ANSWER


async def test_topic_when_no_faq(knowledge: KnowledgeStore) -> None:
    answer = await FallbackResponder(knowledge).answer("canteen opening hours", RetrievalContext())

    assert answer == _TOPIC_TEXT["canteen"]


async def test_directory_when_nothing_matches(knowledge: KnowledgeStore) -> None:
    answer = await FallbackResponder(knowledge).answer("xylophone", RetrievalContext())

    assert answer == DIRECTORY_ANSWER


async def test_store_failure_falls_through_to_topics(knowledge: KnowledgeStore) -> None:
    failing = AsyncMock(side_effect=aiosqlite.OperationalError("database is locked"))
    with patch.object(knowledge, "find_faq_by_keyword", failing):
        answer = await FallbackResponder(knowledge).answer("clinic", RetrievalContext())

    assert answer == _TOPIC_TEXT["clinic"]


async def test_answer_never_empty(knowledge: KnowledgeStore) -> None:
    responder = FallbackResponder(knowledge)
    for query in ("", "   ", "?", "emergency!", "lunch", "zzz"):
        assert (await responder.answer(query, RetrievalContext())).strip()


# -- topic_answer --------------------------------------------------------------


def test_topic_order_emergency_first() -> None:
    assert topic_answer("urgent: canteen on fire") == _TOPIC_TEXT["emergency"]


def test_topic_matches_substrings() -> None:
    # "it" appears inside "submit", so IT support wins over leave.
    assert topic_answer("how to submit leave") == _TOPIC_TEXT["it"]
    assert topic_answer("TIME OFF request") == _TOPIC_TEXT["leave"]


def test_topic_none() -> None:
    assert topic_answer("xylophone") is None


# -- Keyword determinism -------------------------------------------------------


async def test_forgot_password_without_index(knowledge: KnowledgeStore, password_faq) -> None:
    await knowledge.add_faq(password_faq)
    await knowledge.add_faq(
        FAQEntry(question="Canteen hours?", answer="11:30.", category="Canteen", keywords=["lunch"])
    )
    responder = FallbackResponder(knowledge)

    first = await responder.answer("I forgot my password", RetrievalContext())
    await responder.answer("lunch", RetrievalContext())
    second = await responder.answer("I forgot my password", RetrievalContext())

    assert first == second == "Call IT at ext 100."
