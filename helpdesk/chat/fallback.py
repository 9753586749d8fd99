"""Rule-based answers for when the generation backend is absent or failing.

Resolution goes from most to least specific: a retrieved FAQ, a keyword
hit in the FAQ table, a canned topic paragraph, then the department
directory. The responder always returns a non-empty answer.
"""

from __future__ import annotations

import logging

import aiosqlite

from helpdesk.knowledge.models import RetrievalContext
from helpdesk.knowledge.retriever import tokenize
from helpdesk.knowledge.store import KnowledgeStore

logger = logging.getLogger(__name__)

# Checked in order; the first topic with a substring hit wins.
TOPICS: tuple[tuple[str, tuple[str, ...], str], ...] = (
    (
        "emergency",
        ("emergency", "urgent"),
        "For ANY emergency, call Extension 999 immediately (or radio Channel 1). "
        "For medical emergencies, contact the Site Clinic at Extension 444. "
        "Security Control Room is at Extension 333. Remember: STOP work, SECURE the area, "
        "CALL for help, and REPORT to your supervisor.",
    ),
    (
        "hr",
        ("hr", "human resource"),
        "HR Department contacts: Main HR Office - Extension 200, HR Manager - Extension 201, "
        "Payroll queries - Extension 202, Training & Development - Extension 203. "
        "The HR office is located in the Admin Building, Ground Floor. "
        "Office hours: 7:30 AM - 4:30 PM weekdays.",
    ),
    (
        "it",
        ("it", "computer", "password"),
        "For IT support, contact the IT Help Desk at Extension 100 or email the IT help desk. "
        "The IT office is in the Admin Building, 1st Floor. Support hours: 7:00 AM - 5:00 PM. "
        "For password resets, have your employee ID ready.",
    ),
    (
        "canteen",
        ("canteen", "food", "lunch"),
        "Canteen operating hours: Breakfast 5:30-7:30 AM, Lunch 11:30 AM-1:30 PM, "
        "Dinner 5:30-7:30 PM, Night shift meal 12:00-1:00 AM. Menus rotate weekly and are "
        "posted on the intranet. Special dietary requirements can be accommodated - "
        "speak to the canteen manager.",
    ),
    (
        "clinic",
        ("clinic", "medical", "doctor", "sick"),
        "The Site Clinic is located next to the Admin Building. It operates 24/7 for "
        "emergencies, with routine consultations from 7:30 AM - 4:30 PM. For emergencies, "
        "call Extension 444 or radio 'Medical Emergency'. Services include first aid, "
        "basic medical care, and occupational health.",
    ),
    (
        "leave",
        ("leave", "vacation", "time off"),
        "To apply for leave: 1) Check your leave balance on HR portal, 2) Complete Leave "
        "Application Form, 3) Submit to supervisor at least 2 weeks in advance, 4) After "
        "approval, submit to HR. For emergency leave, contact HR immediately at Extension 200.",
    ),
    (
        "pay",
        ("pay", "salary", "wage"),
        "Salaries are paid on the 25th of each month. If the 25th falls on a weekend or "
        "holiday, payment is made on the last working day before. Payslips are available "
        "on the HR portal from the 23rd. For payroll queries, contact Extension 202.",
    ),
)

DIRECTORY_ANSWER = (
    "I can help you with information about the company including: emergency contacts, "
    "HR queries, IT support, facilities (canteen, clinic, gym), safety procedures, and "
    "company policies. For specific questions, please try asking about a particular topic, "
    "or contact the relevant department directly:\n\n"
    "- Emergency: Extension 999\n"
    "- HR: Extension 200\n"
    "- IT Help Desk: Extension 100\n"
    "- Safety: Extension 555\n"
    "- Clinic: Extension 444"
)


def topic_answer(query: str) -> str | None:
    """Canned paragraph for the first topic the query mentions, if any."""
    lowered = query.lower()
    for name, words, answer in TOPICS:
        if any(word in lowered for word in words):
            logger.debug("Fallback topic match: %s", name)
            return answer
    return None


class FallbackResponder:
    """Deterministic answers built from retrieved FAQs and topic heuristics."""

    def __init__(self, store: KnowledgeStore | None = None) -> None:
        self._store = store or KnowledgeStore.get()

    async def answer(self, query: str, context: RetrievalContext) -> str:
        """Return the most specific answer available for *query*."""
        if context.faq_matches:
            return context.faq_matches[0].answer

        keyword_hit = await self._keyword_answer(query)
        if keyword_hit:
            return keyword_hit

        return topic_answer(query) or DIRECTORY_ANSWER

    async def _keyword_answer(self, query: str) -> str | None:
        """Answer of the first FAQ keyed on a query word, tried in input order."""
        for token in tokenize(query, min_length=3):
            try:
                faq = await self._store.find_faq_by_keyword(token)
            except (aiosqlite.Error, OSError):
                logger.exception("FAQ keyword lookup failed, skipping to topic heuristics")
                return None
            if faq is not None:
                return faq.answer
        return None
