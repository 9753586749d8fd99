"""Data models for chat sessions and messages."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any, Literal

from pydantic import BaseModel

Role = Literal["user", "assistant", "system"]
ROLES: frozenset[str] = frozenset({"user", "assistant", "system"})


class ChatSession(BaseModel):
    """One conversation, keyed by a client-held session ID."""

    session_id: str
    user_id: str | None = None
    message_count: int = 0
    last_activity: str
    created_at: str

    @classmethod
    def from_row(cls, row: tuple[Any, ...]) -> ChatSession:
        """Build from a ``SELECT session_id, user_id, message_count, last_activity, created_at``."""
        return cls(
            session_id=row[0],
            user_id=row[1],
            message_count=row[2],
            last_activity=row[3],
            created_at=row[4],
        )

    def expired(self, retention: timedelta, now: datetime | None = None) -> bool:
        """True when the session has been idle longer than *retention*."""
        now = now or datetime.now(UTC)
        return datetime.fromisoformat(self.last_activity) + retention < now


class ChatMessage(BaseModel):
    """A single conversation turn. Never mutated once stored."""

    id: int
    session_id: str
    role: Role
    content: str
    created_at: str

    @classmethod
    def from_row(cls, row: tuple[Any, ...]) -> ChatMessage:
        return cls(
            id=row[0],
            session_id=row[1],
            role=row[2],
            content=row[3],
            created_at=row[4],
        )

    def to_api_message(self) -> dict[str, str]:
        """Format for the Claude Messages API."""
        return {"role": self.role, "content": self.content}
