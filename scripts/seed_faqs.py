#!/usr/bin/env python3
"""Seed the knowledge base with starter FAQs and print a per-category summary.

Usage:
    uv run python scripts/seed_faqs.py
"""

import asyncio
import logging
from collections import Counter

from helpdesk.knowledge.seed import seed_faqs
from helpdesk.knowledge.store import KnowledgeStore

logging.basicConfig(format="%(levelname)s - %(message)s", level=logging.INFO)


async def main() -> None:
    store = KnowledgeStore.get()
    created, updated = await seed_faqs(store)
    print(f"FAQ seeding completed: {created} created, {updated} updated.")

    faqs = await store.list_faqs()
    print(f"\nTotal active FAQs: {len(faqs)}")
    counts = Counter(faq.category for faq in faqs)
    print("\nFAQ Categories:")
    for category in await store.faq_categories():
        print(f"  - {category}: {counts[category]} FAQs")

    if await store.rebuild_index():
        print("\nFull-text index rebuilt.")
    else:
        print("\nFull-text search unavailable; keyword matching will be used.")


if __name__ == "__main__":
    asyncio.run(main())
