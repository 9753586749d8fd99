"""Async HTTP surface for the chat widget.

Uses aiohttp's AppRunner/TCPSite for non-blocking start/stop.

Routes:
    GET  /health    liveness check
    GET  /api/chat  history for ``?sessionId=``
    POST /api/chat  ``intent`` of ``init``, ``clear`` or ``message``
"""

from __future__ import annotations

import logging
from typing import Any

from aiohttp import web

from helpdesk.chat.errors import RateLimited, SessionNotFound
from helpdesk.chat.orchestrator import ChatOrchestrator
from helpdesk.config import settings

logger = logging.getLogger(__name__)

ORCHESTRATOR = web.AppKey("orchestrator", ChatOrchestrator)

GENERIC_ERROR = "Something went wrong. Please try again."


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def _read_payload(request: web.Request) -> dict[str, Any] | None:
    """Accept JSON bodies and form posts alike. Returns None on bad JSON."""
    if request.content_type == "application/json":
        try:
            payload = await request.json()
        except ValueError:
            return None
        return payload if isinstance(payload, dict) else None
    form = await request.post()
    return {key: form.get(key) for key in form}


async def _health(request: web.Request) -> web.Response:
    """GET /health: basic liveness check."""
    return web.json_response({"status": "ok"})


async def _get_history(request: web.Request) -> web.Response:
    """GET /api/chat?sessionId=...: chronological history, empty if unknown."""
    session_id = request.query.get("sessionId", "").strip()
    if not session_id:
        return _error("Session ID required", 400)

    orchestrator = request.app[ORCHESTRATOR]
    try:
        history = await orchestrator.history(session_id)
    except SessionNotFound:
        history = []

    return web.json_response({
        "messages": [
            {
                "id": str(message.id),
                "role": message.role,
                "content": message.content,
                "createdAt": message.created_at,
            }
            for message in history
        ]
    })


async def _post_chat(request: web.Request) -> web.Response:
    """POST /api/chat: route by ``intent``."""
    payload = await _read_payload(request)
    if payload is None:
        return _error("invalid JSON", 400)

    session_id = str(payload.get("sessionId") or "").strip()
    if not session_id:
        return _error("Session ID required", 400)

    orchestrator = request.app[ORCHESTRATOR]
    intent = payload.get("intent")

    if intent == "init":
        await orchestrator.init(session_id)
        return web.json_response({"success": True})

    if intent == "clear":
        await orchestrator.clear(session_id)
        return web.json_response({"success": True})

    if intent == "message":
        message = str(payload.get("message") or "").strip()
        if not message:
            return _error("Message required", 400)
        if len(message) > settings.max_message_length:
            return _error(
                f"Message too long (max {settings.max_message_length} characters)", 400
            )
        try:
            reply = await orchestrator.send_message(session_id, message)
        except RateLimited as exc:
            return _error(exc.user_message, 429)
        except SessionNotFound:
            logger.exception("Session vanished mid-request: %s", session_id)
            return _error(GENERIC_ERROR, 500)
        return web.json_response({"response": reply})

    return _error("Invalid intent", 400)


def create_web_app(orchestrator: ChatOrchestrator) -> web.Application:
    """Build the aiohttp Application with routes."""
    app = web.Application()
    app[ORCHESTRATOR] = orchestrator
    app.router.add_get("/health", _health)
    app.router.add_get("/api/chat", _get_history)
    app.router.add_post("/api/chat", _post_chat)
    return app


class ChatServer:
    """Manages the aiohttp server lifecycle."""

    def __init__(
        self,
        orchestrator: ChatOrchestrator,
        host: str | None = None,
        port: int | None = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.host = host or settings.http_host
        self.port = port or settings.http_port
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Start listening for chat requests."""
        app = create_web_app(self.orchestrator)
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info("Chat server listening on %s:%d", self.host, self.port)

    async def stop(self) -> None:
        """Shut down the server gracefully."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Chat server stopped")
