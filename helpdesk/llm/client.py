"""Async Claude API gateway for reply generation."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

import anthropic

from helpdesk.chat.errors import GenerationError, GenerationFailure
from helpdesk.config import settings
from helpdesk.llm.models import chat_model, friendly
from helpdesk.llm.prompt import build_messages, build_system_prompt

if TYPE_CHECKING:
    from helpdesk.chat.models import ChatMessage
    from helpdesk.knowledge.models import RetrievalContext

logger = logging.getLogger(__name__)


def _first_text(content: list[Any]) -> str | None:
    """Text of the first non-empty text block in a reply, if any."""
    for block in content:
        if getattr(block, "type", None) == "text" and block.text.strip():
            return block.text
    return None


class GenerationGateway:
    """Thin adapter over the Anthropic Messages API.

    Makes exactly one request per :meth:`generate` call, never retries, and
    bounds the wait with ``settings.generation_timeout_seconds``. Every
    failure surfaces as :class:`GenerationError` so callers handle timeouts,
    transport errors, HTTP errors and empty replies the same way.
    """

    def __init__(self) -> None:
        self._client: anthropic.AsyncAnthropic | None = None
        self._client_key = ""

    def available(self) -> bool:
        """Whether an API key is configured. Re-read on every call."""
        return settings.generation_configured

    def _get_client(self) -> anthropic.AsyncAnthropic:
        """Lazily build the client, rebuilding it when the API key changes."""
        key = settings.anthropic_api_key
        if self._client is None or key != self._client_key:
            self._client = anthropic.AsyncAnthropic(
                api_key=key,
                timeout=settings.generation_timeout_seconds,
                max_retries=0,
            )
            self._client_key = key
        return self._client

    async def generate(
        self,
        history: list[ChatMessage],
        context: RetrievalContext,
        policy: str | None = None,
    ) -> str:
        """Generate a reply to the last user turn in *history*.

        Args:
            history: Chronological conversation, ending with the current user turn.
            context: Retrieved knowledge to attach to the current turn.
            policy: Overrides the deployment's system policy.

        Returns:
            The text of the first text block in the reply.

        Raises:
            GenerationError: Not configured, timed out, transport or HTTP
                failure, or a reply without usable text.
        """
        if not self.available():
            raise GenerationError(GenerationFailure.NOT_CONFIGURED)

        messages = build_messages(history, context)
        if not messages or messages[-1]["role"] != "user":
            raise GenerationError(GenerationFailure.NO_INPUT, "no user turn to answer")

        model = chat_model()
        client = self._get_client()
        started = time.monotonic()
        try:
            response = await asyncio.wait_for(
                client.messages.create(
                    model=model,
                    max_tokens=settings.generation_max_tokens,
                    system=build_system_prompt(policy),
                    messages=messages,
                ),
                timeout=settings.generation_timeout_seconds,
            )
        except (TimeoutError, anthropic.APITimeoutError) as exc:
            raise GenerationError(GenerationFailure.TIMEOUT, str(exc)) from exc
        except anthropic.APIConnectionError as exc:
            raise GenerationError(GenerationFailure.NETWORK, str(exc)) from exc
        except anthropic.APIStatusError as exc:
            raise GenerationError(
                GenerationFailure.HTTP_STATUS, f"{exc.status_code}: {exc.message}"
            ) from exc
        except anthropic.APIError as exc:
            raise GenerationError(GenerationFailure.NETWORK, str(exc)) from exc

        text = _first_text(response.content)
        if text is None:
            raise GenerationError(GenerationFailure.EMPTY_RESPONSE, "reply had no text block")

        logger.info(
            "Generated reply with %s in %.2fs (%d turns)",
            friendly(model),
            time.monotonic() - started,
            len(messages),
        )
        return text
