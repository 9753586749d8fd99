"""System policy and message assembly for the generation backend."""

import logging
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from helpdesk.chat.models import ChatMessage
from helpdesk.config import settings
from helpdesk.knowledge.models import RetrievalContext

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).resolve().parent.parent.parent / "config"

DEFAULT_POLICY = """You are the company helpdesk assistant. You help employees find \
information quickly and answer their questions about the company.

## Response Guidelines
- Be helpful, professional, and concise
- Use the context provided from the company database when available
- For emergencies, always emphasize calling Extension 999 immediately
- If unsure, recommend contacting the specific department
- Include relevant extension numbers when applicable
- Don't make up specific names or details not provided in context"""


def _read_config(filename: str) -> str:
    """Read a config markdown file, returning empty string if missing."""
    path = CONFIG_DIR / filename
    if path.exists():
        return path.read_text(encoding="utf-8")
    return ""


def build_system_prompt(policy: str | None = None) -> str:
    """Assemble the system prompt: static policy plus today's date.

    The policy comes from *policy* when given, else ``config/POLICY.md``,
    else :data:`DEFAULT_POLICY`.
    """
    text = policy or _read_config("POLICY.md").strip() or DEFAULT_POLICY
    now = datetime.now(ZoneInfo(settings.company_timezone))
    return f"{text}\n\nCurrent date: {now.strftime('%A, %d %B %Y')}"


def with_context(text: str, context: RetrievalContext) -> str:
    """Append the rendered retrieval context to the user's text, if any."""
    rendered = context.render()
    if not rendered:
        return text
    return f"{text}\n\n[Context from company database:\n{rendered}]"


def build_messages(
    history: list[ChatMessage],
    context: RetrievalContext,
    max_turns: int | None = None,
) -> list[dict[str, str]]:
    """Turn stored history into a valid Messages API payload.

    Keeps the last *max_turns* user/assistant turns in chronological order,
    drops leading assistant turns, merges consecutive turns of the same role
    and augments the final user turn with the retrieval context.
    """
    max_turns = max_turns or settings.history_turns
    turns = [m for m in history if m.role in ("user", "assistant")][-max_turns:]
    while turns and turns[0].role != "user":
        turns = turns[1:]

    messages: list[dict[str, str]] = []
    for message in turns:
        if messages and messages[-1]["role"] == message.role:
            messages[-1]["content"] += f"\n\n{message.content}"
        else:
            messages.append(message.to_api_message())

    if messages and messages[-1]["role"] == "user":
        messages[-1]["content"] = with_context(messages[-1]["content"], context)
    else:
        logger.warning("History does not end with a user turn; nothing to answer")
    return messages
