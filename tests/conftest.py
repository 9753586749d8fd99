"""Shared test fixtures."""

import sqlite3
from pathlib import Path

import pytest

from helpdesk.chat.store import ChatStore
from helpdesk.knowledge.models import FAQEntry
from helpdesk.knowledge.store import KnowledgeStore


def _has_fts5() -> bool:
    conn = sqlite3.connect(":memory:")
    try:
        options = {row[0] for row in conn.execute("PRAGMA compile_options")}
    finally:
        conn.close()
    return "ENABLE_FTS5" in options


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Never reach the real API or the real database from a test."""
    monkeypatch.setattr("helpdesk.config.settings.anthropic_api_key", "")
    monkeypatch.setattr("helpdesk.config.settings.database_path", tmp_path / "default.db")
    ChatStore._reset()
    KnowledgeStore._reset()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "test.db"


@pytest.fixture
def chat_store(db_path: Path) -> ChatStore:
    """A ChatStore backed by a temp database."""
    return ChatStore(db_path=db_path)


@pytest.fixture
def knowledge(db_path: Path) -> KnowledgeStore:
    """A KnowledgeStore without a full-text index."""
    return KnowledgeStore(db_path=db_path, fulltext=False)


@pytest.fixture
def knowledge_fts(db_path: Path) -> KnowledgeStore:
    """A KnowledgeStore with FTS5 indexes."""
    if not _has_fts5():
        pytest.skip("SQLite built without FTS5")
    return KnowledgeStore(db_path=db_path, fulltext=True)


@pytest.fixture
def password_faq() -> FAQEntry:
    return FAQEntry(
        question="How do I reset my password?",
        answer="Call IT at ext 100.",
        category="IT",
        keywords=["password", "reset"],
    )
