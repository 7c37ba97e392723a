"""Per-session in-memory state: lock, draft messages and context-injection flag."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from memoir.tracking.aggregator import DraftMessage

_logger = structlog.get_logger("memoir.tracking.registry")


@dataclass
class SessionState:
    """Everything Memoir keeps in memory for one live session."""

    session_id: str
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    """Serializes draft mutation, finalize, compaction and deletion for this session."""
    drafts: dict[str, DraftMessage] = field(default_factory=dict)
    """Message id → draft, in first-seen order."""
    context_injected: bool = False
    """Whether prior-session context has already been offered to this session."""


class SessionRegistry:
    """
    Arena of :class:`SessionState` records keyed by session id.

    A record is created on first use and removed only by :meth:`drop`, which
    the session-deletion path calls. Only safe to use from a single asyncio
    event loop.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, SessionState] = {}

    def get(self, session_id: str) -> SessionState:
        """Return the state for ``session_id``, creating it if needed."""
        state = self._sessions.get(session_id)
        if state is None:
            state = SessionState(session_id=session_id)
            self._sessions[session_id] = state
            _logger.debug("session_state_created", session_id=session_id)
        return state

    def peek(self, session_id: str) -> SessionState | None:
        """Return the state for ``session_id`` without creating it."""
        return self._sessions.get(session_id)

    def drop(self, session_id: str) -> SessionState | None:
        """Forget a session entirely. Returns the removed state, if any."""
        return self._sessions.pop(session_id, None)

    def session_ids(self) -> list[str]:
        return list(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
