"""Context blocks Memoir injects into the host conversation."""

from __future__ import annotations

from typing import Protocol

import structlog
from pydantic import BaseModel

from memoir.service import MemoirService

_logger = structlog.get_logger("memoir.hooks.context")


class Note(BaseModel):
    """A project memory note, e.g. a preference or a gotcha."""

    type: str
    content: str


class NoteSource(Protocol):
    """Looks up project notes relevant to a piece of text."""

    async def search_relevant(self, text: str) -> list[Note]: ...


async def compaction_context(service: MemoirService, session_id: str) -> str | None:
    """
    Build the block offered to the host while it compacts a session.

    Lists every active chunk as ``[id]: summary`` and asks the host's summary
    to cite those ids. Returns None when the session has no active chunks.
    """
    chunks = await service.get_active_chunks(session_id)
    if not chunks:
        return None
    return service.renderer.compaction_context(chunks)


async def session_start_context(
    service: MemoirService,
    session_id: str,
    message_text: str,
    notes: NoteSource | None = None,
) -> str | None:
    """
    Build the block injected before the first user message of a session.

    Fires at most once per session, on the first message with non-blank text.
    Returns None when nothing relevant exists or the session was already primed.
    """
    if not message_text.strip():
        return None
    if not service.claim_context_injection(session_id):
        return None

    found = await notes.search_relevant(message_text) if notes is not None else []
    recent = await service.get_recent_summary_chunks()
    if not found and not recent:
        return None

    _logger.debug(
        "session_context_injected",
        session_id=session_id,
        notes=len(found),
        chunks=len(recent),
    )
    return service.renderer.session_start(found, recent)
