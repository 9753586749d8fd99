"""Tests for GenerationGateway: one bounded call, errors folded into GenerationError."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import pytest

from helpdesk.chat.errors import GenerationError, GenerationFailure
from helpdesk.chat.models import ChatMessage
from helpdesk.knowledge.models import RetrievalContext
from helpdesk.llm.client import GenerationGateway, _first_text
from helpdesk.llm.models import MODEL_MAP

_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


@dataclass
class _FakeBlock:
    type: str
    text: str = ""


def _reply(*blocks: _FakeBlock) -> MagicMock:
    response = MagicMock()
    response.content = list(blocks)
    return response


def _client(create: AsyncMock) -> MagicMock:
    client = MagicMock()
    client.messages.create = create
    return client


def _history(*turns: tuple[str, str]) -> list[ChatMessage]:
    return [
        ChatMessage(id=i, session_id="s1", role=role, content=content, created_at=f"t{i}")
        for i, (role, content) in enumerate(turns, start=1)
    ]


@pytest.fixture
def configured(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("helpdesk.config.settings.anthropic_api_key", "sk-test")


# -- available -----------------------------------------------------------------


def test_available_rereads_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    gateway = GenerationGateway()
    assert gateway.available() is False

    monkeypatch.setattr("helpdesk.config.settings.anthropic_api_key", "sk-test")
    assert gateway.available() is True

    monkeypatch.setattr("helpdesk.config.settings.anthropic_api_key", "   ")
    assert gateway.available() is False


def test_client_rebuilt_when_key_changes(monkeypatch: pytest.MonkeyPatch) -> None:
    gateway = GenerationGateway()
    with patch("helpdesk.llm.client.anthropic.AsyncAnthropic") as cls:
        monkeypatch.setattr("helpdesk.config.settings.anthropic_api_key", "key-1")
        gateway._get_client()
        gateway._get_client()
        monkeypatch.setattr("helpdesk.config.settings.anthropic_api_key", "key-2")
        gateway._get_client()

    assert cls.call_count == 2
    assert cls.call_args.kwargs["api_key"] == "key-2"
    assert cls.call_args.kwargs["max_retries"] == 0


# -- generate ------------------------------------------------------------------


async def test_not_configured() -> None:
    with pytest.raises(GenerationError) as exc_info:
        await GenerationGateway().generate(_history(("user", "hi")), RetrievalContext())
    assert exc_info.value.kind is GenerationFailure.NOT_CONFIGURED


async def test_success_sends_one_request(configured, password_faq) -> None:
    create = AsyncMock(return_value=_reply(_FakeBlock("text", "Call IT at ext 100.")))
    gateway = GenerationGateway()
    history = _history(("user", "hello"), ("assistant", "hi"), ("user", "reset password?"))
    context = RetrievalContext(faq_matches=[password_faq])

    with patch.object(gateway, "_get_client", return_value=_client(create)):
        text = await gateway.generate(history, context, policy="Be brief.")

    assert text == "Call IT at ext 100."
    create.assert_awaited_once()
    kwargs = create.call_args.kwargs
    assert kwargs["model"] == MODEL_MAP["sonnet"]
    assert kwargs["max_tokens"] == 1024
    assert kwargs["system"].startswith("Be brief.\n\nCurrent date: ")
    messages = kwargs["messages"]
    assert [m["role"] for m in messages] == ["user", "assistant", "user"]
    assert messages[-1]["content"].startswith("reset password?\n\n[Context from company database:")
    assert "A: Call IT at ext 100." in messages[-1]["content"]
    assert messages[0]["content"] == "hello"


async def test_skips_empty_and_non_text_blocks(configured) -> None:
    create = AsyncMock(
        return_value=_reply(
            _FakeBlock("thinking"), _FakeBlock("text", "  "), _FakeBlock("text", "Answer")
        )
    )
    gateway = GenerationGateway()

    with patch.object(gateway, "_get_client", return_value=_client(create)):
        text = await gateway.generate(_history(("user", "hi")), RetrievalContext())

    assert text == "Answer"


async def test_empty_response(configured) -> None:
    create = AsyncMock(return_value=_reply(_FakeBlock("text", "")))
    gateway = GenerationGateway()

    with patch.object(gateway, "_get_client", return_value=_client(create)):
        with pytest.raises(GenerationError) as exc_info:
            await gateway.generate(_history(("user", "hi")), RetrievalContext())
    assert exc_info.value.kind is GenerationFailure.EMPTY_RESPONSE


async def test_no_user_turn(configured) -> None:
    create = AsyncMock()
    gateway = GenerationGateway()

    with patch.object(gateway, "_get_client", return_value=_client(create)):
        with pytest.raises(GenerationError) as exc_info:
            await gateway.generate(_history(("assistant", "hello")), RetrievalContext())

    assert exc_info.value.kind is GenerationFailure.NO_INPUT
    create.assert_not_called()


async def test_timeout_is_bounded(configured, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("helpdesk.config.settings.generation_timeout_seconds", 0.05)

    async def _slow(**kwargs):
        await asyncio.sleep(5)

    gateway = GenerationGateway()
    with patch.object(gateway, "_get_client", return_value=_client(AsyncMock(side_effect=_slow))):
        with pytest.raises(GenerationError) as exc_info:
            await gateway.generate(_history(("user", "hi")), RetrievalContext())
    assert exc_info.value.kind is GenerationFailure.TIMEOUT


@pytest.mark.parametrize(
    ("error", "kind"),
    [
        (anthropic.APITimeoutError(request=_REQUEST), GenerationFailure.TIMEOUT),
        (anthropic.APIConnectionError(request=_REQUEST), GenerationFailure.NETWORK),
        (
            anthropic.InternalServerError(
                "overloaded", response=httpx.Response(529, request=_REQUEST), body=None
            ),
            GenerationFailure.HTTP_STATUS,
        ),
        (
            anthropic.AuthenticationError(
                "bad key", response=httpx.Response(401, request=_REQUEST), body=None
            ),
            GenerationFailure.HTTP_STATUS,
        ),
    ],
)
async def test_api_errors_mapped(configured, error: Exception, kind: GenerationFailure) -> None:
    gateway = GenerationGateway()
    create = AsyncMock(side_effect=error)

    with patch.object(gateway, "_get_client", return_value=_client(create)):
        with pytest.raises(GenerationError) as exc_info:
            await gateway.generate(_history(("user", "hi")), RetrievalContext())

    assert exc_info.value.kind is kind
    create.assert_awaited_once()


async def test_http_status_detail_has_code(configured) -> None:
    error = anthropic.RateLimitError(
        "slow down", response=httpx.Response(429, request=_REQUEST), body=None
    )
    gateway = GenerationGateway()

    with patch.object(gateway, "_get_client", return_value=_client(AsyncMock(side_effect=error))):
        with pytest.raises(GenerationError) as exc_info:
            await gateway.generate(_history(("user", "hi")), RetrievalContext())

    assert exc_info.value.detail.startswith("429")


def test_first_text_none_when_no_text() -> None:
    assert _first_text([]) is None
    assert _first_text([_FakeBlock("tool_use")]) is None
