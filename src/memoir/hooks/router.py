"""Routes host runtime events into the Memoir service."""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import ValidationError

from memoir.events.bus import MemoirEvent
from memoir.hooks.host import HostClient, fetch_compaction_summary
from memoir.models.events import (
    HostEvent,
    HostPart,
    MessagePartUpdated,
    MessageUpdated,
    SessionCompacted,
    SessionDeleted,
    SessionIdle,
    parse_host_event,
)
from memoir.service import MemoirService
from memoir.tracking.aggregator import accept_host_part

_TRACKED_ROLES = frozenset({"user", "assistant"})


def _event_session_id(event: HostEvent) -> str | None:
    match event:
        case SessionIdle() | SessionCompacted() | SessionDeleted():
            return event.session_id
        case MessageUpdated():
            return event.properties.info.session_id
        case MessagePartUpdated():
            return event.properties.part.session_id
        case _:
            return None


class EventRouter:
    """
    Single entry point for the host's event feed.

    ``session.idle`` finalizes drafts, ``session.compacted`` compacts active
    chunks (preferring the host's own narrative), ``session.deleted`` purges the
    session, and ``message.*`` updates feed the aggregator. Any other event
    type is ignored.

    :meth:`handle` never raises: failures are logged and published as
    :attr:`MemoirEvent.HOOK_FAILED`.
    """

    def __init__(self, service: MemoirService, host: HostClient | None = None) -> None:
        self._service = service
        self._host = host
        self._logger = structlog.get_logger("memoir.hooks")

    async def handle(self, raw: dict[str, Any] | HostEvent) -> None:
        """Parse and dispatch one host event."""
        if isinstance(raw, dict):
            try:
                event = parse_host_event(raw)
            except ValidationError as exc:
                self._fail(str(raw.get("type", "")), None, exc)
                return
        else:
            event = raw

        try:
            await self._dispatch(event)
        except Exception as exc:
            self._fail(event.type, _event_session_id(event), exc)

    def _fail(self, event_type: str, session_id: str | None, exc: Exception) -> None:
        self._logger.error(
            "hook_failed",
            event_type=event_type,
            session_id=session_id,
            error=str(exc),
            exc_info=exc,
        )
        self._service.event_bus.publish(
            MemoirEvent.HOOK_FAILED,
            {"event_type": event_type, "session_id": session_id, "error": str(exc)},
        )

    async def _dispatch(self, event: HostEvent) -> None:
        match event:
            case SessionIdle():
                await self._service.finalize(event.session_id)
            case SessionCompacted():
                await self._on_compacted(event.session_id)
            case SessionDeleted():
                await self._service.delete_session(event.session_id)
            case MessageUpdated():
                info = event.properties.info
                if info.role not in _TRACKED_ROLES:
                    self._logger.debug("message_role_ignored", role=info.role, message_id=info.id)
                    return
                await self._service.ensure_message(info.session_id, info.id, info.role)
            case MessagePartUpdated():
                await self._on_part(event.properties.part)
            case _:
                self._logger.debug("event_ignored", event_type=event.type)

    async def _on_compacted(self, session_id: str) -> None:
        await self._service.finalize(session_id)
        summary = None
        if len(await self._service.get_active_chunks(session_id)) > 1:
            summary = await fetch_compaction_summary(self._host, session_id)
        await self._service.compact(session_id, summary)

    async def _on_part(self, host_part: HostPart) -> None:
        part, reason = accept_host_part(host_part)
        if part is None:
            self._logger.debug(
                "part_rejected",
                session_id=host_part.session_id,
                part_id=host_part.id,
                part_type=host_part.type,
                status=host_part.state.status if host_part.state else None,
                reason=reason,
            )
            self._service.event_bus.publish(
                MemoirEvent.PART_REJECTED,
                {
                    "session_id": host_part.session_id,
                    "message_id": host_part.message_id,
                    "part_id": host_part.id,
                    "part_type": host_part.type,
                    "reason": reason or "",
                },
            )
            return
        await self._service.add_part(
            host_part.session_id,
            host_part.message_id,
            host_part.id,
            part,
            create_missing=True,
        )
