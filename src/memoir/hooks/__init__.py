"""Host integration: event routing, context injection and host transcript access."""

from memoir.hooks.context import Note, NoteSource, compaction_context, session_start_context
from memoir.hooks.host import (
    HostClient,
    extract_compaction_summary,
    fetch_compaction_summary,
    looks_like_compaction_summary,
)
from memoir.hooks.router import EventRouter

__all__ = [
    "EventRouter",
    "HostClient",
    "Note",
    "NoteSource",
    "compaction_context",
    "extract_compaction_summary",
    "fetch_compaction_summary",
    "looks_like_compaction_summary",
    "session_start_context",
]
