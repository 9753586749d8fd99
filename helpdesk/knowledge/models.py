"""Data models for the knowledge base and the per-request retrieval context."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

_EXCERPT_CHARS = 100


class FAQEntry(BaseModel):
    """A question/answer pair usable as context or as a fallback answer."""

    id: int | None = None
    question: str
    answer: str
    category: str
    keywords: list[str] = Field(default_factory=list)
    is_active: bool = True
    order: int = 0

    @field_validator("question", "answer", "category")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()

    @field_validator("keywords")
    @classmethod
    def _lowercase_keywords(cls, value: list[str]) -> list[str]:
        return [kw.strip().lower() for kw in value if kw.strip()]

    @classmethod
    def from_row(cls, row: tuple[Any, ...]) -> FAQEntry:
        """Build from ``SELECT id, question, answer, category, keywords, is_active, sort_order``."""
        return cls(
            id=row[0],
            question=row[1],
            answer=row[2],
            category=row[3],
            keywords=json.loads(row[4]) if row[4] else [],
            is_active=bool(row[5]),
            order=row[6],
        )

    def to_row(self) -> tuple[Any, ...]:
        return (
            self.question,
            self.answer,
            self.category,
            json.dumps(self.keywords),
            int(self.is_active),
            self.order,
        )


class Contact(BaseModel):
    """A staff directory entry."""

    id: int | None = None
    first_name: str
    last_name: str
    position: str
    department: str
    phone: str = ""
    phone_extension: str = ""
    email: str = ""
    is_active: bool = True

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @classmethod
    def from_row(cls, row: tuple[Any, ...]) -> Contact:
        """Build from ``SELECT id, first_name, last_name, position, department, phone,
        phone_extension, email, is_active``."""
        return cls(
            id=row[0],
            first_name=row[1],
            last_name=row[2],
            position=row[3],
            department=row[4],
            phone=row[5] or "",
            phone_extension=row[6] or "",
            email=row[7] or "",
            is_active=bool(row[8]),
        )

    def summary(self) -> str:
        parts = [self.full_name]
        if self.position:
            parts.append(f"Position: {self.position}")
        if self.department:
            parts.append(f"Department: {self.department}")
        if self.phone:
            parts.append(f"Phone: {self.phone}")
        if self.phone_extension:
            parts.append(f"Extension: {self.phone_extension}")
        if self.email:
            parts.append(f"Email: {self.email}")
        return ", ".join(parts)


class NewsItem(BaseModel):
    """A company news post. Only ``published`` items are ever retrieved."""

    id: int | None = None
    title: str
    excerpt: str = ""
    status: str = "published"
    published_at: datetime | None = None

    @classmethod
    def from_row(cls, row: tuple[Any, ...]) -> NewsItem:
        return cls(
            id=row[0], title=row[1], excerpt=row[2] or "", status=row[3], published_at=row[4]
        )

    def summary(self) -> list[str]:
        date = "Recent"
        if self.published_at:
            date = f"{self.published_at.day} {self.published_at.strftime('%b %Y')}"
        lines = [f"- {self.title} ({date})"]
        if self.excerpt:
            lines.append(f"  {self.excerpt[:_EXCERPT_CHARS]}...")
        return lines


@dataclass
class RetrievalContext:
    """Knowledge gathered for a single request. Built fresh, never stored."""

    faq_matches: list[FAQEntry] = field(default_factory=list)
    contact_matches: list[Contact] = field(default_factory=list)
    news_matches: list[NewsItem] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (self.faq_matches or self.contact_matches or self.news_matches)

    def render(self) -> str:
        """Render as labeled sections: FAQ first, then contacts, then news."""
        parts: list[str] = []
        if self.faq_matches:
            parts.append("## Relevant Information from Knowledge Base:")
            for faq in self.faq_matches:
                parts.append(f"Q: {faq.question}\nA: {faq.answer}\n")
        if self.contact_matches:
            parts.append("\n## Contacts from Directory:")
            for contact in self.contact_matches:
                parts.append(f"- {contact.summary()}")
        if self.news_matches:
            parts.append("\n## Recent Company News:")
            for item in self.news_matches:
                parts.extend(item.summary())
        return "\n".join(parts)
