"""Hierarchical compaction: collapse a session's active chunks into one summary chunk.

Protocol, run by the caller under the session lock after flushing drafts:

1. Load the session's active chunks, oldest first.
2. With one or none there is nothing to merge; return ``None``.
3. Use the supplied narrative when it is non-blank, else ask the ``Summarizer``.
4. Build a summary chunk one level above the deepest child, referencing every
   active chunk in order, carrying their combined metadata and no messages.
5. Insert it and flip its children to ``compacted`` in one transaction.
"""

from __future__ import annotations

import structlog

from memoir.compaction.summarizers import MetadataSummarizer, Summarizer
from memoir.events.bus import EventBus, MemoirEvent
from memoir.models.chunk import Chunk, ChunkContent, ChunkMetadata, CompactionResult
from memoir.store.chunks import ChunkStore, make_id

COMPACTED_OUTCOME = "compacted"


def aggregate_metadata(chunks: list[Chunk]) -> ChunkMetadata:
    """Union tool names and file paths across chunks, first-seen order kept."""
    tools: dict[str, None] = {}
    files: dict[str, None] = {}
    for chunk in chunks:
        tools.update(dict.fromkeys(chunk.content.metadata.tools_used))
        files.update(dict.fromkeys(chunk.content.metadata.files_modified))
    return ChunkMetadata(
        tools_used=list(tools),
        files_modified=list(files),
        outcome=COMPACTED_OUTCOME,
    )


class CompactionEngine:
    """
    Turns N > 1 active chunks of a session into one active summary chunk.

    The engine does not lock or flush drafts itself; callers go through
    :meth:`memoir.service.MemoirService.compact`, which does both first.

    Example::

        engine = CompactionEngine(store, MetadataSummarizer(), event_bus)
        result = await engine.compact("ses_1", summary="Refactored the parser")
        if result is not None:
            print(result.summary_chunk.id, len(result.compacted_chunks))
    """

    def __init__(
        self,
        store: ChunkStore,
        summarizer: Summarizer | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._store = store
        self._summarizer = summarizer or MetadataSummarizer()
        self._event_bus = event_bus or EventBus()
        self._logger = structlog.get_logger("memoir.compaction")

    @property
    def summarizer(self) -> Summarizer:
        return self._summarizer

    async def compact(self, session_id: str, summary: str | None = None) -> CompactionResult | None:
        """
        Compact every active chunk of ``session_id`` into one summary chunk.

        Args:
            session_id: The session to compact.
            summary: Narrative to store on the summary chunk. Blank or None
                means the configured summarizer writes one.

        Returns:
            The result, or None when the session has at most one active chunk.

        Raises:
            memoir.store.PersistenceError: If the atomic write fails. No chunk
                changes status in that case.
        """
        log = self._logger.bind(session_id=session_id)
        active = await self._store.get_active_chunks(session_id)
        if len(active) <= 1:
            log.debug("compaction_skipped", active_chunks=len(active))
            self._event_bus.publish(
                MemoirEvent.COMPACTION_SKIPPED,
                {"session_id": session_id, "active_chunks": len(active)},
            )
            return None

        if summary is not None and summary.strip():
            summary_text = summary.strip()
            source = "host"
        else:
            summary_text = await self._summarizer.summarize(active)
            source = "summarizer"

        summary_chunk = Chunk(
            id=make_id("ch"),
            session_id=session_id,
            content=ChunkContent(messages=[], metadata=aggregate_metadata(active)),
            summary=summary_text,
            status="active",
            depth=1 + max(chunk.depth for chunk in active),
            child_refs=[chunk.id for chunk in active],
        )
        await self._store.insert_summary(summary_chunk)

        compacted = [chunk.model_copy(update={"status": "compacted"}) for chunk in active]
        result = CompactionResult(summary_chunk=summary_chunk, compacted_chunks=compacted)

        log.info(
            "compaction_completed",
            summary_chunk_id=summary_chunk.id,
            depth=summary_chunk.depth,
            chunks_compacted=len(compacted),
            summary_source=source,
        )
        self._event_bus.publish(
            MemoirEvent.COMPACTION_COMPLETED,
            {
                "session_id": session_id,
                "summary_chunk_id": summary_chunk.id,
                "compacted_chunk_ids": list(summary_chunk.child_refs),
                "depth": summary_chunk.depth,
                "summary_source": source,
            },
        )
        return result
