"""Typed payload definitions for each MemoirEvent.

Usage example::

    from memoir.events.bus import EventBus, MemoirEvent
    from memoir.events.payloads import CompactionCompletedPayload

    def on_compaction(event: MemoirEvent, payload: CompactionCompletedPayload) -> None:
        print(f"{payload['summary_chunk_id']} replaces {payload['compacted_chunk_ids']}")

    bus.subscribe(MemoirEvent.COMPACTION_COMPLETED, on_compaction)  # type: ignore[arg-type]
"""

from __future__ import annotations

from typing import Literal, TypedDict

# ── Chunk lifecycle ───────────────────────────────────────────────────────────


class ChunkCreatedPayload(TypedDict):
    """Payload for :attr:`MemoirEvent.CHUNK_CREATED`."""

    chunk_id: str
    session_id: str
    depth: int
    message_count: int


# ── Compaction lifecycle ──────────────────────────────────────────────────────


class CompactionCompletedPayload(TypedDict):
    """Payload for :attr:`MemoirEvent.COMPACTION_COMPLETED`."""

    session_id: str
    summary_chunk_id: str
    compacted_chunk_ids: list[str]
    """Ids of the chunks that moved from active to compacted, oldest first."""
    depth: int
    """Depth of the new summary chunk."""
    summary_source: Literal["host", "summarizer"]
    """Whether the summary text came from the caller or the configured Summarizer."""


class CompactionSkippedPayload(TypedDict):
    """Payload for :attr:`MemoirEvent.COMPACTION_SKIPPED`."""

    session_id: str
    active_chunks: int
    """Active chunk count at the time of the request (0 or 1)."""


# ── Session lifecycle ─────────────────────────────────────────────────────────


class SessionDeletedPayload(TypedDict):
    """Payload for :attr:`MemoirEvent.SESSION_DELETED`."""

    session_id: str
    chunks_deleted: int


# ── Host event intake ─────────────────────────────────────────────────────────


class PartRejectedPayload(TypedDict):
    """Payload for :attr:`MemoirEvent.PART_REJECTED`."""

    session_id: str
    message_id: str
    part_id: str
    part_type: str
    reason: str
    """``"blank"``, ``"incomplete_tool"`` or ``"unsupported_type"``."""


class HookFailedPayload(TypedDict):
    """Payload for :attr:`MemoirEvent.HOOK_FAILED`."""

    event_type: str
    session_id: str | None
    error: str
