"""Error taxonomy and tagged results for the chat pipeline.

Only :class:`RateLimited` and :class:`SessionNotFound` ever reach callers of
the orchestrator. :class:`GenerationError` is always recovered locally, and
retrieval source failures are carried as values (:class:`Err`) rather than
raised at all.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")

RATE_LIMIT_MESSAGE = "You're sending messages too quickly. Please wait a moment."


class HelpdeskError(Exception):
    """Base class for errors raised by the assistant backend."""


class RateLimited(HelpdeskError):
    """The session exceeded its admission window."""

    def __init__(self, session_id: str, message: str = RATE_LIMIT_MESSAGE) -> None:
        super().__init__(message)
        self.session_id = session_id
        self.user_message = message


class SessionNotFound(HelpdeskError):
    """A history-dependent operation was called for an unknown session."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class GenerationFailure(Enum):
    NOT_CONFIGURED = "not_configured"
    NO_INPUT = "no_input"
    TIMEOUT = "timeout"
    NETWORK = "network"
    HTTP_STATUS = "http_status"
    EMPTY_RESPONSE = "empty_response"


class GenerationError(HelpdeskError):
    """The generation backend failed, timed out or returned nothing usable."""

    def __init__(self, kind: GenerationFailure, detail: str = "") -> None:
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)
        self.kind = kind
        self.detail = detail


class FullTextUnavailable(HelpdeskError):
    """No full-text index is configured for the collection being searched."""

    def __init__(self, collection: str) -> None:
        super().__init__(f"Full-text index unavailable for {collection}")
        self.collection = collection


class SourceError(Enum):
    """Why a single retrieval source contributed nothing."""

    INDEX_UNAVAILABLE = "index_unavailable"
    QUERY_FAILED = "query_failed"
    STORE_FAILED = "store_failed"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    kind: SourceError
    detail: str = ""

    @property
    def ok(self) -> bool:
        return False


Result = Ok[T] | Err
