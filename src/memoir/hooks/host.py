"""Access to the host runtime's own view of a session."""

from __future__ import annotations

from typing import Any, Protocol

import structlog
from pydantic import BaseModel, ConfigDict, ValidationError

_logger = structlog.get_logger("memoir.hooks.host")

INJECTED_BLOCK_PREFIX = "## Project Memory (Memoir)"


class HostClient(Protocol):
    """The slice of the host API Memoir needs: a session's message transcript."""

    async def session_messages(self, session_id: str) -> list[dict[str, Any]]:
        """Return ``[{"info": {...}, "parts": [{"type": ..., "text": ...}, ...]}, ...]``, oldest first."""
        ...


class _TranscriptPart(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str
    text: str | None = None


class _TranscriptMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    parts: list[_TranscriptPart] = []


def looks_like_compaction_summary(text: str) -> bool:
    """Whether a text part reads like the host's post-compaction narrative."""
    if text.startswith(INJECTED_BLOCK_PREFIX):
        return False
    return (
        "Session Continuation Prompt" in text
        or "Complete Summary of All Work" in text
        or ("What We Did" in text and "ch_" in text)
    )


def extract_compaction_summary(messages: list[dict[str, Any]]) -> str | None:
    """
    Find the host's compaction summary in a transcript, newest message first.

    Memoir's own injected memory block is never returned. Malformed messages
    are skipped.
    """
    for raw in reversed(messages):
        try:
            message = _TranscriptMessage.model_validate(raw)
        except ValidationError:
            _logger.debug("transcript_message_skipped")
            continue
        for part in message.parts:
            if part.type == "text" and part.text and looks_like_compaction_summary(part.text):
                return part.text
    return None


async def fetch_compaction_summary(client: HostClient | None, session_id: str) -> str | None:
    """Ask the host for the session transcript and extract its summary. Failures yield None."""
    if client is None:
        return None
    try:
        messages = await client.session_messages(session_id)
    except Exception as exc:
        _logger.warning("host_transcript_unavailable", session_id=session_id, error=str(exc))
        return None
    return extract_compaction_summary(messages)
