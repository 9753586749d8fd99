"""End-to-end message handling: admission, persistence, retrieval, reply."""

from __future__ import annotations

import asyncio
import logging

from helpdesk.chat.errors import GenerationError, RateLimited
from helpdesk.chat.fallback import FallbackResponder
from helpdesk.chat.models import ChatMessage, ChatSession
from helpdesk.chat.rate_limit import RateLimiter
from helpdesk.chat.store import ChatStore
from helpdesk.config import settings
from helpdesk.knowledge.retriever import KnowledgeRetriever
from helpdesk.llm.client import GenerationGateway

logger = logging.getLogger(__name__)


class ChatOrchestrator:
    """Public entry point for the chat backend.

    Collaborators are injected so tests (and a distributed deployment) can
    swap any of them. Only :class:`RateLimited` and
    :class:`~helpdesk.chat.errors.SessionNotFound` ever escape; once a message
    is accepted, a failed generation of any kind is answered from the
    fallback path instead.
    """

    def __init__(
        self,
        store: ChatStore | None = None,
        limiter: RateLimiter | None = None,
        retriever: KnowledgeRetriever | None = None,
        gateway: GenerationGateway | None = None,
        fallback: FallbackResponder | None = None,
    ) -> None:
        self.store = store or ChatStore.get()
        self.limiter = limiter or RateLimiter()
        self.retriever = retriever or KnowledgeRetriever()
        self.gateway = gateway or GenerationGateway()
        self.fallback = fallback or FallbackResponder()
        self._inflight: set[asyncio.Task[str]] = set()

    async def init(self, session_id: str) -> ChatSession:
        """Create the session if needed. Not rate limited."""
        return await self.store.get_or_create(session_id)

    async def clear(self, session_id: str) -> None:
        """Drop the session's messages. A no-op for unknown sessions."""
        if await self.store.get_session(session_id) is None:
            logger.debug("Clear requested for unknown session %s", session_id)
            return
        await self.store.clear(session_id)

    async def history(self, session_id: str, limit: int = 20) -> list[ChatMessage]:
        return await self.store.history(session_id, limit=limit)

    async def send_message(self, session_id: str, text: str) -> str:
        """Accept one user message and return the assistant's reply.

        Raises:
            RateLimited: The session is over its admission window. Nothing
                is persisted in that case.
        """
        if not self.limiter.admit(session_id):
            raise RateLimited(session_id)

        await self.store.get_or_create(session_id)
        await self.store.append(session_id, "user", text)

        # Shielded so a disconnecting caller still leaves a complete history.
        task = asyncio.create_task(self._respond(session_id, text))
        self._inflight.add(task)
        task.add_done_callback(self._reply_done)
        return await asyncio.shield(task)

    def _reply_done(self, task: asyncio.Task[str]) -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Reply task failed: %s", exc, exc_info=exc)

    async def _respond(self, session_id: str, text: str) -> str:
        context = await self.retriever.gather(text)

        reply: str | None = None
        if self.gateway.available():
            try:
                history = await self.store.history(session_id, limit=settings.history_turns)
                reply = await self.gateway.generate(history, context)
            except GenerationError as exc:
                logger.warning(
                    "Generation failed for session %s (%s), using fallback",
                    session_id,
                    exc.kind.value,
                )
            except Exception:
                logger.exception(
                    "Unexpected error generating reply for session %s, using fallback",
                    session_id,
                )

        if reply is None:
            reply = await self.fallback.answer(text, context)

        await self.store.append(session_id, "assistant", reply)
        return reply
