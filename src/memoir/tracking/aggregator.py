"""Streaming aggregation of host message/part updates into draft messages."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, get_args

import structlog

from memoir.models.chunk import (
    ChunkMessage,
    ChunkMessagePart,
    ChunkMetadata,
    FilePart,
    ReasoningPart,
    Role,
    TextPart,
    ToolPart,
)
from memoir.models.config import TrackingConfig
from memoir.models.events import HostPart
from memoir.tracking.registry import SessionRegistry

_logger = structlog.get_logger("memoir.tracking")

_ROLES: frozenset[str] = frozenset(get_args(Role))

# ── Exceptions ─────────────────────────────────────────────────────────────────


class DraftValidationError(Exception):
    """Raised when a draft update cannot be applied."""


class UnknownMessageError(DraftValidationError):
    """Raised when a part arrives for a message that has no draft yet."""

    def __init__(self, session_id: str, message_id: str) -> None:
        super().__init__(f"Unknown message {message_id!r} in session {session_id!r}")
        self.session_id = session_id
        self.message_id = message_id


# ── Host part filtering ────────────────────────────────────────────────────────

REJECT_BLANK = "blank"
REJECT_INCOMPLETE_TOOL = "incomplete_tool"
REJECT_UNSUPPORTED = "unsupported_type"


def accept_host_part(part: HostPart) -> tuple[ChunkMessagePart | None, str | None]:
    """
    Convert a streamed host part into a storable part, or say why not.

    Blank text and reasoning are dropped, tool calls are only kept once their
    state is ``completed``, and unrecognized types are dropped.

    Returns:
        ``(part, None)`` when accepted, ``(None, reason)`` when rejected.
    """
    match part.type:
        case "text" | "reasoning":
            if not part.text or not part.text.strip():
                return None, REJECT_BLANK
            if part.type == "text":
                return TextPart(text=part.text), None
            return ReasoningPart(text=part.text), None
        case "tool":
            if part.state is None or part.state.status != "completed":
                return None, REJECT_INCOMPLETE_TOOL
            if not part.tool:
                return None, REJECT_BLANK
            return ToolPart(tool=part.tool, input=part.state.input, output=part.state.output), None
        case "file":
            name = part.filename or part.url
            if not name:
                return None, REJECT_BLANK
            return FilePart(text=name), None
        case _:
            return None, REJECT_UNSUPPORTED


def is_blank_part(part: ChunkMessagePart) -> bool:
    """Whether a text, reasoning or file part carries no visible text."""
    return isinstance(part, (TextPart, ReasoningPart, FilePart)) and not part.text.strip()


# ── Metadata derivation ────────────────────────────────────────────────────────


def _append_unique(seq: list[str], seen: set[str], value: str) -> None:
    if value not in seen:
        seen.add(value)
        seq.append(value)


def _file_path(tool_input: dict[str, Any] | None, path_keys: list[str]) -> str | None:
    if not tool_input:
        return None
    for key in path_keys:
        value = tool_input.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def derive_metadata(messages: list[ChunkMessage], config: TrackingConfig) -> ChunkMetadata:
    """
    Derive chunk metadata from finalized messages.

    ``tools_used`` lists every tool name in first-seen order. ``files_modified``
    lists the path argument of file-modifying tools in first-seen order.
    ``outcome`` is ``"success"`` when the last message is from the assistant
    and ``"incomplete"`` otherwise.
    """
    modifying = {name.lower() for name in config.file_modifying_tools}
    tools: list[str] = []
    files: list[str] = []
    seen_tools: set[str] = set()
    seen_files: set[str] = set()
    for message in messages:
        for part in message.parts:
            if not isinstance(part, ToolPart):
                continue
            _append_unique(tools, seen_tools, part.tool)
            if part.tool.lower() in modifying:
                path = _file_path(part.input, config.path_keys)
                if path is not None:
                    _append_unique(files, seen_files, path)
    outcome = None
    if messages:
        outcome = "success" if messages[-1].role == "assistant" else "incomplete"
    return ChunkMetadata(tools_used=tools, files_modified=files, outcome=outcome)


# ── Drafts ─────────────────────────────────────────────────────────────────────


@dataclass
class DraftMessage:
    """An in-progress message: role plus parts keyed by part id in arrival order."""

    id: str
    role: Role | None = None
    parts: dict[str, ChunkMessagePart] = field(default_factory=dict)
    timestamp: int = field(default_factory=lambda: int(time.time()))

    def to_message(self) -> ChunkMessage:
        # A part can arrive before its message.updated event; such shells have
        # no role until one is seen and are attributed to the assistant.
        return ChunkMessage(
            id=self.id,
            role=self.role or "assistant",
            parts=list(self.parts.values()),
            timestamp=self.timestamp,
        )


class MessageAggregator:
    """
    Accumulates partial message updates per session until finalize.

    State lives on each session's :class:`SessionState`. Methods here are
    synchronous and assume the caller holds the session lock where ordering
    against finalize matters; :class:`memoir.service.MemoirService` does.
    """

    def __init__(self, registry: SessionRegistry, config: TrackingConfig | None = None) -> None:
        self._registry = registry
        self._config = config or TrackingConfig()

    @property
    def config(self) -> TrackingConfig:
        return self._config

    def ensure_message(self, session_id: str, message_id: str, role: str) -> DraftMessage:
        """
        Create a draft shell for a message if none exists.

        Repeated calls are no-ops, except that a shell created without a role
        (see :meth:`add_part`) takes the role given here.

        Raises:
            DraftValidationError: If ``role`` is not ``"user"`` or ``"assistant"``.
        """
        if role not in _ROLES:
            raise DraftValidationError(f"Unsupported message role: {role!r}")
        drafts = self._registry.get(session_id).drafts
        draft = drafts.get(message_id)
        if draft is None:
            draft = DraftMessage(id=message_id, role=role)  # type: ignore[arg-type]
            drafts[message_id] = draft
            _logger.debug("draft_created", session_id=session_id, message_id=message_id, role=role)
        elif draft.role is None:
            draft.role = role  # type: ignore[assignment]
        return draft

    def add_part(
        self,
        session_id: str,
        message_id: str,
        part_id: str,
        part: ChunkMessagePart,
        *,
        create_missing: bool = False,
    ) -> bool:
        """
        Insert or overwrite the part stored under ``part_id``.

        A new ``part_id`` is appended after existing parts; a repeated one keeps
        its original position and takes the new value. Blank text, reasoning and
        file parts are refused before anything is touched, so an earlier value
        under the same ``part_id`` survives.

        Args:
            session_id: Owning session.
            message_id: Draft message to update.
            part_id: Stable host id of the streamed part.
            part: The converted part.
            create_missing: Create a role-less shell if the message is unknown.

        Returns:
            False when the part was refused as blank, True otherwise.

        Raises:
            UnknownMessageError: If the message is unknown and ``create_missing``
                is False.
        """
        if is_blank_part(part):
            _logger.debug("blank_part_refused", session_id=session_id, part_id=part_id)
            return False
        drafts = self._registry.get(session_id).drafts
        draft = drafts.get(message_id)
        if draft is None:
            if not create_missing:
                raise UnknownMessageError(session_id, message_id)
            draft = DraftMessage(id=message_id)
            drafts[message_id] = draft
            _logger.debug("draft_shell_created", session_id=session_id, message_id=message_id)
        draft.parts[part_id] = part
        return True

    def track_message(self, session_id: str, message: ChunkMessage) -> None:
        """Insert a complete message as a draft, replacing any draft with its id.

        Blank parts are skipped.
        """
        draft = DraftMessage(id=message.id, role=message.role, timestamp=message.timestamp)
        for index, part in enumerate(message.parts):
            if is_blank_part(part):
                continue
            draft.parts[f"{message.id}:{index}"] = part
        self._registry.get(session_id).drafts[message.id] = draft

    def has_messages(self, session_id: str) -> bool:
        state = self._registry.peek(session_id)
        return state is not None and bool(state.drafts)

    def get_messages(self, session_id: str) -> list[ChunkMessage]:
        """Snapshot the session's drafts that carry at least one part."""
        state = self._registry.peek(session_id)
        if state is None:
            return []
        return [draft.to_message() for draft in state.drafts.values() if draft.parts]

    def clear_session(self, session_id: str) -> None:
        state = self._registry.peek(session_id)
        if state is not None:
            state.drafts.clear()

    def derive_metadata(self, messages: list[ChunkMessage]) -> ChunkMetadata:
        return derive_metadata(messages, self._config)
