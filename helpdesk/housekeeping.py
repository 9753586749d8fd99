"""Out-of-band retention sweep for chat sessions and rate windows.

Runs as a background task next to the HTTP server, never on the request
path. Sessions past retention are already invisible to reads; the sweep
only reclaims their storage.
"""

from __future__ import annotations

import asyncio
import logging

import aiosqlite

from helpdesk.chat.rate_limit import RateLimiter
from helpdesk.chat.store import ChatStore
from helpdesk.config import settings

logger = logging.getLogger(__name__)


async def sweep_once(store: ChatStore, limiter: RateLimiter) -> tuple[int, int]:
    """Purge expired sessions and rate windows. Returns (sessions, windows) removed."""
    windows = limiter.sweep()
    try:
        sessions = await store.purge_expired()
    except (aiosqlite.Error, OSError):
        logger.exception("Session retention sweep failed")
        sessions = 0
    return sessions, windows


async def retention_loop(
    store: ChatStore,
    limiter: RateLimiter,
    interval: float | None = None,
) -> None:
    """Sweep forever, sleeping *interval* seconds between passes."""
    interval = interval or settings.housekeeping_interval_seconds
    while True:
        sessions, windows = await sweep_once(store, limiter)
        if sessions or windows:
            logger.info("Housekeeping removed %d session(s), %d rate window(s)", sessions, windows)
        await asyncio.sleep(interval)


def start_housekeeping(store: ChatStore, limiter: RateLimiter) -> asyncio.Task:
    """Spawn the retention loop as a background task."""
    task = asyncio.get_running_loop().create_task(retention_loop(store, limiter))
    logger.info(
        "Housekeeping started (every %ds, retention %s)",
        settings.housekeeping_interval_seconds,
        store.retention,
    )
    return task
