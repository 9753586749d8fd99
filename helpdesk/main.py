"""Helpdesk assistant entry point."""

import asyncio
import contextlib
import logging

from helpdesk.chat.orchestrator import ChatOrchestrator
from helpdesk.chat.rate_limit import RateLimiter
from helpdesk.chat.store import ChatStore
from helpdesk.config import settings
from helpdesk.housekeeping import start_housekeeping
from helpdesk.web.server import ChatServer

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


async def serve() -> None:
    """Run the HTTP server and housekeeping until cancelled."""
    store = ChatStore.get()
    limiter = RateLimiter()
    orchestrator = ChatOrchestrator(store=store, limiter=limiter)

    if not orchestrator.gateway.available():
        logger.warning("ANTHROPIC_API_KEY is empty, replies come from the fallback responder")

    server = ChatServer(orchestrator)
    await server.start()
    housekeeping = start_housekeeping(store, limiter)
    try:
        await asyncio.Event().wait()
    finally:
        housekeeping.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await housekeeping
        await server.stop()


def main() -> None:
    """Start the helpdesk assistant."""
    logger.info("Starting helpdesk assistant on port %d...", settings.http_port)
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(serve())


if __name__ == "__main__":
    main()
