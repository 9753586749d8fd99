"""Starter knowledge base for a fresh deployment."""

from __future__ import annotations

import logging

from helpdesk.knowledge.models import FAQEntry
from helpdesk.knowledge.store import KnowledgeStore

logger = logging.getLogger(__name__)

FAQ_SEED: list[dict] = [
    # Safety
    {
        "question": "What is the emergency number?",
        "answer": (
            "For ANY emergency on site, call the Emergency Hotline immediately: Extension 999 "
            "or radio Channel 1. For medical emergencies, contact the Site Clinic at Extension "
            "444. Security Control Room can be reached at Extension 333. Remember: STOP work, "
            "SECURE the area, CALL for help, and REPORT to your supervisor."
        ),
        "category": "Safety",
        "keywords": ["emergency", "number", "help", "urgent", "999", "hotline"],
    },
    {
        "question": "How do I report a safety incident?",
        "answer": (
            "Report ALL incidents immediately: 1) Verbal report to your supervisor right away, "
            "2) Call the Safety Department at Extension 555, 3) Complete an Incident Report Form "
            "within 24 hours, 4) Cooperate with any investigation. Near-misses are just as "
            "important to report as actual incidents."
        ),
        "category": "Safety",
        "keywords": ["report", "incident", "safety", "accident", "hazard", "near miss"],
    },
    {
        "question": "Where are the assembly points?",
        "answer": (
            "Emergency Assembly Points: A - Main Gate car park, B - Processing Plant parking "
            "area, C - Workshop area, D - Magazine gate. Assembly points have green signs with "
            "letters. During drills or emergencies, proceed calmly to your point and await "
            "roll call."
        ),
        "category": "Safety",
        "keywords": ["assembly point", "evacuation", "muster", "meeting point"],
    },
    # HR
    {
        "question": "How do I apply for leave?",
        "answer": (
            "Leave application process: 1) Check your leave balance on the HR portal, "
            "2) Complete the Leave Application Form, 3) Submit to your supervisor at least "
            "2 weeks in advance, 4) After approval, submit to HR. For emergency leave, contact "
            "HR immediately at Extension 200."
        ),
        "category": "HR",
        "keywords": ["leave", "vacation", "time off", "holiday", "annual leave"],
    },
    {
        "question": "What are the working hours?",
        "answer": (
            "Office staff work 7:30 AM to 4:30 PM (Mon-Fri). Operations day shift runs 6:00 AM "
            "to 6:00 PM and night shift 6:00 PM to 6:00 AM. Overtime must be approved by your "
            "supervisor in advance."
        ),
        "category": "HR",
        "keywords": ["hours", "schedule", "shift", "roster", "overtime"],
    },
    {
        "question": "When is payday?",
        "answer": (
            "Salaries are paid on the 25th of each month. If the 25th falls on a weekend or "
            "public holiday, payment is made on the last working day before. Payslips are on "
            "the HR portal from the 23rd. For payroll queries, call Extension 202."
        ),
        "category": "HR",
        "keywords": ["payday", "salary", "payment", "payslip", "wages"],
    },
    # IT
    {
        "question": "How do I reset my password?",
        "answer": (
            "To reset your network or email password, call the IT Help Desk at Extension 100 "
            "or visit the IT office in the Admin Building, 1st Floor. Have your employee ID "
            "ready. Never share your password."
        ),
        "category": "IT",
        "keywords": ["password", "reset", "login", "forgot", "locked out"],
    },
    {
        "question": "How do I connect to WiFi?",
        "answer": (
            "Company devices connect to the corporate network automatically with domain "
            "credentials. Visitors can request guest access from IT at Extension 100. "
            "Personal devices are not permitted on the corporate network."
        ),
        "category": "IT",
        "keywords": ["wifi", "internet", "wireless", "network"],
    },
    # Facilities
    {
        "question": "What are the canteen operating hours?",
        "answer": (
            "Canteen hours: Breakfast 5:30-7:30 AM, Lunch 11:30 AM-1:30 PM, Dinner "
            "5:30-7:30 PM, Night shift meal 12:00-1:00 AM. Menus rotate weekly and are posted "
            "on the intranet."
        ),
        "category": "Facilities",
        "keywords": ["canteen", "food", "lunch", "dining", "meals", "breakfast", "dinner"],
    },
    {
        "question": "Where is the clinic located?",
        "answer": (
            "The Site Clinic is next to the Admin Building. It is open 24/7 for emergencies, "
            "with routine consultations from 7:30 AM - 4:30 PM. For emergencies, call "
            "Extension 444."
        ),
        "category": "Facilities",
        "keywords": ["clinic", "medical", "health", "doctor", "nurse", "sick"],
    },
    # Intranet
    {
        "question": "How do I find a colleague's contact?",
        "answer": (
            "Use the Directory on the intranet to search by name or department, or ask me "
            "with the person's name or role. The directory lists phone extensions, email "
            "addresses and departments."
        ),
        "category": "Intranet",
        "keywords": ["directory", "colleague", "find person"],
    },
]


async def seed_faqs(store: KnowledgeStore | None = None) -> tuple[int, int]:
    """Insert seed FAQs, updating any whose question already exists.

    Returns (created, updated).
    """
    store = store or KnowledgeStore.get()
    created = updated = 0
    for data in FAQ_SEED:
        entry = FAQEntry(**data)
        existing = await store.get_faq_by_question(entry.question)
        if existing is None:
            await store.add_faq(entry)
            created += 1
        else:
            await store.update_faq(existing.id, **data)
            updated += 1
    logger.info("FAQ seeding completed: %d created, %d updated", created, updated)
    return created, updated
