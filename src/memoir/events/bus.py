"""In-process pub/sub event bus for Memoir lifecycle events."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any

import structlog

Handler = Callable[["MemoirEvent", dict[str, Any]], None | Awaitable[None]]


class MemoirEvent(StrEnum):
    """All event types published by Memoir components.

    Typed payload definitions for each event live in
    :mod:`memoir.events.payloads`.

    **Payload schemas by event:**

    ``CHUNK_CREATED``
        :class:`~memoir.events.payloads.ChunkCreatedPayload`:
        ``chunk_id``, ``session_id``, ``depth``, ``message_count``

    ``COMPACTION_COMPLETED``
        :class:`~memoir.events.payloads.CompactionCompletedPayload`:
        ``session_id``, ``summary_chunk_id``, ``compacted_chunk_ids``, ``depth``,
        ``summary_source``

    ``COMPACTION_SKIPPED``
        :class:`~memoir.events.payloads.CompactionSkippedPayload`:
        ``session_id``, ``active_chunks``

    ``SESSION_DELETED``
        :class:`~memoir.events.payloads.SessionDeletedPayload`:
        ``session_id``, ``chunks_deleted``

    ``PART_REJECTED``
        :class:`~memoir.events.payloads.PartRejectedPayload`:
        ``session_id``, ``message_id``, ``part_id``, ``part_type``, ``reason``

    ``HOOK_FAILED``
        :class:`~memoir.events.payloads.HookFailedPayload`:
        ``event_type``, ``session_id`` (may be ``None``), ``error``
    """

    # Chunk lifecycle
    CHUNK_CREATED = "chunk.created"

    # Compaction lifecycle
    COMPACTION_COMPLETED = "compaction.completed"
    COMPACTION_SKIPPED = "compaction.skipped"

    # Session lifecycle
    SESSION_DELETED = "session.deleted"

    # Host event intake
    PART_REJECTED = "part.rejected"
    HOOK_FAILED = "hook.failed"


class EventBus:
    """
    Simple in-process pub/sub event bus.

    - Sync handlers are called inline within ``publish()``.
    - Async handlers are scheduled via ``asyncio.create_task()`` (fire-and-forget).
    - Handler exceptions are logged but never propagate to the publisher.

    Example::

        bus = EventBus()

        def on_compaction(event, payload):
            print(f"Compacted {len(payload['compacted_chunk_ids'])} chunks")

        bus.subscribe(MemoirEvent.COMPACTION_COMPLETED, on_compaction)
    """

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self._handlers: dict[MemoirEvent, list[Handler]] = {}
        self._global_handlers: list[Handler] = []
        self._logger = logger or structlog.get_logger("memoir.events")

    def subscribe(self, event: MemoirEvent, handler: Handler) -> None:
        """
        Register a handler for a specific event type.

        Args:
            event: The event type to listen for.
            handler: Callable accepting ``(event, payload)``. May be sync or async.
        """
        self._handlers.setdefault(event, []).append(handler)

    def subscribe_all(self, handler: Handler) -> None:
        """Register a handler for every event type."""
        self._global_handlers.append(handler)

    def unsubscribe(self, event: MemoirEvent, handler: Handler) -> None:
        """Remove a previously registered handler. No-op if not found."""
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event: MemoirEvent, payload: dict[str, Any]) -> None:
        """
        Publish an event to all registered handlers.

        Sync handlers are called immediately in registration order.
        Async handlers are scheduled as background tasks.

        Args:
            event: The event type to publish.
            payload: Event-specific data dictionary.
        """
        all_handlers = list(self._handlers.get(event, [])) + list(self._global_handlers)
        for handler in all_handlers:
            name = getattr(handler, "__qualname__", repr(handler))
            try:
                result = handler(event, payload)
                if asyncio.iscoroutine(result):
                    try:
                        loop = asyncio.get_running_loop()
                    except RuntimeError:
                        result.close()
                        self._logger.warning("event_handler_no_loop", event=str(event), handler=name)
                        continue
                    _task = loop.create_task(result)  # noqa: RUF006
            except Exception as exc:
                self._logger.error(
                    "event_handler_error",
                    event=str(event),
                    handler=name,
                    error=str(exc),
                )
