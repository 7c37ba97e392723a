"""MemoirService: the primary public API for Memoir."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from types import TracebackType
from typing import Self

import structlog

from memoir.compaction.engine import CompactionEngine
from memoir.compaction.summarizers import Summarizer, make_summarizer
from memoir.events.bus import EventBus, MemoirEvent
from memoir.models.chunk import (
    Chunk,
    ChunkContent,
    ChunkHeader,
    ChunkMessage,
    ChunkMessagePart,
    CompactionResult,
    SearchResult,
)
from memoir.models.config import MemoirConfig
from memoir.render.markdown import ChunkRenderer
from memoir.store.chunks import ChunkStore
from memoir.tokens.estimator import TokenEstimator
from memoir.tracking.aggregator import REJECT_BLANK, MessageAggregator
from memoir.tracking.registry import SessionRegistry, SessionState


class MemoirService:
    """
    Durable, searchable memory for coding-agent sessions.

    Owns one chunk store, one message aggregator, one compaction engine and
    one event bus. Every operation that touches a session's drafts or active
    chunks runs under that session's lock, so streamed parts, finalize,
    compaction and deletion for one session never interleave.

    Example::

        async with await MemoirService.open(MemoirConfig()) as memoir:
            await memoir.ensure_message("ses_1", "msg_1", "user")
            await memoir.add_part("ses_1", "msg_1", "prt_1", TextPart(text="Fix the parser"))
            chunk = await memoir.finalize("ses_1")
            hits = await memoir.search("parser", session_id="ses_1")
    """

    def __init__(
        self,
        config: MemoirConfig | None = None,
        *,
        store: ChunkStore | None = None,
        event_bus: EventBus | None = None,
        summarizer: Summarizer | None = None,
        registry: SessionRegistry | None = None,
    ) -> None:
        self._config = config or MemoirConfig.default()
        self._store = store or ChunkStore(self._config.store, self._config.search)
        self._event_bus = event_bus or EventBus()
        self._registry = registry or SessionRegistry()
        self._aggregator = MessageAggregator(self._registry, self._config.tracking)
        self._engine = CompactionEngine(
            self._store,
            summarizer or make_summarizer(self._config.compaction),
            self._event_bus,
        )
        self._renderer = ChunkRenderer(self._config.tools)
        self._estimator = TokenEstimator(self._config.tools.chars_per_token)
        self._logger = structlog.get_logger("memoir.service")

    @classmethod
    async def open(
        cls,
        config: MemoirConfig | None = None,
        *,
        event_bus: EventBus | None = None,
        summarizer: Summarizer | None = None,
    ) -> MemoirService:
        """
        Build a service and initialize its store.

        Raises:
            aiosqlite.Error: If the database cannot be opened.
        """
        service = cls(config, event_bus=event_bus, summarizer=summarizer)
        await service._store.initialize()
        return service

    async def close(self) -> None:
        await self._store.close()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # ── Properties ─────────────────────────────────────────────────────────────

    @property
    def config(self) -> MemoirConfig:
        return self._config

    @property
    def store(self) -> ChunkStore:
        return self._store

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def aggregator(self) -> MessageAggregator:
        return self._aggregator

    @property
    def engine(self) -> CompactionEngine:
        return self._engine

    @property
    def renderer(self) -> ChunkRenderer:
        return self._renderer

    @property
    def estimator(self) -> TokenEstimator:
        return self._estimator

    @asynccontextmanager
    async def _session_lock(self, session_id: str) -> AsyncIterator[SessionState]:
        # delete_session drops the state while others may be queued on its
        # lock; a waiter that wakes on a dropped state retries on the current one.
        while True:
            state = self._registry.get(session_id)
            async with state.lock:
                if self._registry.peek(session_id) is state:
                    yield state
                    return

    # ── Streaming aggregation ──────────────────────────────────────────────────

    async def ensure_message(self, session_id: str, message_id: str, role: str) -> None:
        """Create a draft shell for a message. See :meth:`MessageAggregator.ensure_message`."""
        async with self._session_lock(session_id):
            self._aggregator.ensure_message(session_id, message_id, role)

    async def add_part(
        self,
        session_id: str,
        message_id: str,
        part_id: str,
        part: ChunkMessagePart,
        *,
        create_missing: bool = False,
    ) -> bool:
        """
        Upsert a draft part. See :meth:`MessageAggregator.add_part`.

        A blank part is refused and published as :attr:`MemoirEvent.PART_REJECTED`.

        Returns:
            Whether the part was stored.
        """
        async with self._session_lock(session_id):
            accepted = self._aggregator.add_part(
                session_id, message_id, part_id, part, create_missing=create_missing
            )
        if not accepted:
            self._event_bus.publish(
                MemoirEvent.PART_REJECTED,
                {
                    "session_id": session_id,
                    "message_id": message_id,
                    "part_id": part_id,
                    "part_type": part.type,
                    "reason": REJECT_BLANK,
                },
            )
        return accepted

    async def track_message(self, session_id: str, message: ChunkMessage) -> None:
        """Add a complete message to the session's drafts."""
        async with self._session_lock(session_id):
            self._aggregator.track_message(session_id, message)

    def has_messages(self, session_id: str) -> bool:
        return self._aggregator.has_messages(session_id)

    def get_messages(self, session_id: str) -> list[ChunkMessage]:
        return self._aggregator.get_messages(session_id)

    # ── Chunk lifecycle ────────────────────────────────────────────────────────

    async def finalize(self, session_id: str) -> Chunk | None:
        """
        Flush the session's drafts into a new active depth-0 chunk.

        Returns:
            The new chunk, or None when there was nothing to flush.

        Raises:
            PersistenceError: If the write fails. Drafts are kept for a retry.
        """
        async with self._session_lock(session_id):
            return await self._finalize_locked(session_id)

    async def _finalize_locked(self, session_id: str) -> Chunk | None:
        messages = self._aggregator.get_messages(session_id)
        if not messages:
            # Only part-less shells (or nothing) remain.
            self._aggregator.clear_session(session_id)
            return None

        content = ChunkContent(
            messages=messages,
            metadata=self._aggregator.derive_metadata(messages),
        )
        chunk = await self._store.create_chunk(session_id, content)
        self._aggregator.clear_session(session_id)

        self._logger.info(
            "chunk_finalized",
            session_id=session_id,
            chunk_id=chunk.id,
            messages=chunk.message_count,
            tools=len(content.metadata.tools_used),
        )
        self._publish_created(chunk)
        return chunk

    async def create_chunk(
        self,
        session_id: str,
        content: ChunkContent,
        *,
        summary: str | None = None,
    ) -> Chunk:
        """Persist a depth-0 chunk from ready-made content, bypassing drafts."""
        async with self._session_lock(session_id):
            chunk = await self._store.create_chunk(session_id, content, summary=summary)
        self._publish_created(chunk)
        return chunk

    def _publish_created(self, chunk: Chunk) -> None:
        self._event_bus.publish(
            MemoirEvent.CHUNK_CREATED,
            {
                "chunk_id": chunk.id,
                "session_id": chunk.session_id,
                "depth": chunk.depth,
                "message_count": chunk.message_count,
            },
        )

    async def compact(self, session_id: str, summary: str | None = None) -> CompactionResult | None:
        """
        Flush drafts, then collapse the session's active chunks into one summary.

        Args:
            session_id: The session to compact.
            summary: Host narrative for the summary chunk. Blank or None lets
                the configured summarizer write one.

        Returns:
            The result, or None when at most one active chunk exists.
        """
        async with self._session_lock(session_id):
            await self._finalize_locked(session_id)
            return await self._engine.compact(session_id, summary)

    async def delete_session(self, session_id: str) -> int:
        """
        Irreversibly remove a session's chunks, index rows, drafts and state.

        Returns:
            The number of chunks deleted.
        """
        async with self._session_lock(session_id):
            deleted = await self._store.delete_session(session_id)
            self._aggregator.clear_session(session_id)
            self._registry.drop(session_id)
        self._event_bus.publish(
            MemoirEvent.SESSION_DELETED,
            {"session_id": session_id, "chunks_deleted": deleted},
        )
        return deleted

    # ── Reads ──────────────────────────────────────────────────────────────────

    async def get_chunk(self, chunk_id: str) -> Chunk | None:
        return await self._store.get_chunk(chunk_id)

    async def get_active_chunks(self, session_id: str) -> list[Chunk]:
        return await self._store.get_active_chunks(session_id)

    async def get_recent_chunks(
        self,
        session_id: str | None = None,
        limit: int = 10,
    ) -> list[Chunk]:
        return await self._store.get_recent_chunks(session_id, limit)

    async def get_recent_summary_chunks(self, n: int | None = None) -> list[Chunk]:
        if n is None:
            n = self._config.tools.recent_summary_count
        return await self._store.get_recent_summary_chunks(n)

    async def search(
        self,
        query: str,
        *,
        session_id: str | None = None,
        depth: int = 0,
        limit: int | None = None,
    ) -> list[SearchResult]:
        return await self._store.search(query, session_id=session_id, depth=depth, limit=limit)

    async def expand(self, chunk_id: str, include_children: bool = False) -> list[Chunk]:
        return await self._store.expand(chunk_id, include_children)

    async def expand_headers(
        self,
        chunk_id: str,
        include_children: bool = False,
    ) -> list[ChunkHeader]:
        return await self._store.expand_headers(chunk_id, include_children)

    # ── Session flags ──────────────────────────────────────────────────────────

    def claim_context_injection(self, session_id: str) -> bool:
        """
        Mark the session as having received injected context.

        Returns:
            True the first time for a session, False afterwards.
        """
        state = self._registry.get(session_id)
        if state.context_injected:
            return False
        state.context_injected = True
        return True
