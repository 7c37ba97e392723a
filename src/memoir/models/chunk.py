"""Chunk, message and part data models for Memoir."""

from __future__ import annotations

import time
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

Role = Literal["user", "assistant"]
ChunkStatus = Literal["active", "compacted"]

# ── Part Models ────────────────────────────────────────────────────────────────


class TextPart(BaseModel):
    """A plain text segment of a message."""

    type: Literal["text"] = "text"
    text: str


class ReasoningPart(BaseModel):
    """Chain-of-thought reasoning text emitted by the model."""

    type: Literal["reasoning"] = "reasoning"
    text: str


class ToolPart(BaseModel):
    """A finished tool invocation and its result."""

    type: Literal["tool"] = "tool"
    tool: str
    input: dict[str, Any] | None = None
    output: str | None = None


class FilePart(BaseModel):
    """A file attachment, stored by name or path only."""

    type: Literal["file"] = "file"
    text: str


# Discriminated union; the ``type`` field is the discriminator key.
ChunkMessagePart = Annotated[
    TextPart | ReasoningPart | ToolPart | FilePart,
    Field(discriminator="type"),
]


# ── Messages and content ───────────────────────────────────────────────────────


class ChunkMessage(BaseModel):
    """A finalized conversation message inside a chunk."""

    id: str
    role: Role
    parts: list[ChunkMessagePart] = Field(default_factory=list)
    timestamp: int = Field(default_factory=lambda: int(time.time()))
    """Unix timestamp in seconds."""

    def text_content(self) -> str:
        """Concatenate text from all TextPart objects in this message."""
        return "\n".join(part.text for part in self.parts if isinstance(part, TextPart))


class ChunkMetadata(BaseModel):
    """Aggregate facts derived from a chunk's messages."""

    tools_used: list[str] = Field(default_factory=list)
    """Unique tool names in first-seen order."""
    files_modified: list[str] = Field(default_factory=list)
    """Unique file paths in first-seen order."""
    outcome: str | None = None


class ChunkContent(BaseModel):
    """Ordered messages plus their derived metadata."""

    messages: list[ChunkMessage] = Field(default_factory=list)
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)


# ── Chunk ──────────────────────────────────────────────────────────────────────


class Chunk(BaseModel):
    """
    A persisted, addressable unit of session history.

    Depth 0 chunks hold raw finalized messages. Depth >= 1 chunks are summaries
    whose ``child_refs`` point at the chunks they replaced in the session's
    active history.
    """

    id: str
    """ULID-based sortable ID, e.g. ``ch_01JXYZ6K3MNPQR4STUVWXYZ01``."""
    session_id: str
    content: ChunkContent = Field(default_factory=ChunkContent)
    summary: str | None = None
    status: ChunkStatus = "active"
    depth: int = Field(default=0, ge=0)
    child_refs: list[str] = Field(default_factory=list)
    created_at: int = Field(default_factory=lambda: int(time.time()))
    """Unix timestamp in seconds."""

    @property
    def message_count(self) -> int:
        return len(self.content.messages)


class ChunkHeader(BaseModel):
    """
    Everything about a chunk except its message bodies.

    Built straight from indexed columns so callers can judge whether a full
    expansion fits their token budget before paying for it.
    """

    id: str
    session_id: str
    summary: str | None = None
    status: ChunkStatus = "active"
    depth: int = 0
    child_refs: list[str] = Field(default_factory=list)
    created_at: int = 0
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)
    message_count: int = 0
    content_chars: int = 0
    """Character count of the searchable message text (text, reasoning, tools)."""


# ── Result Types ───────────────────────────────────────────────────────────────


class SearchResult(BaseModel):
    """A chunk matched by full-text search. Larger ``rank`` means more relevant."""

    chunk: Chunk
    rank: float


class CompactionResult(BaseModel):
    """The outcome of collapsing a session's active chunks into one summary."""

    summary_chunk: Chunk
    compacted_chunks: list[Chunk]

    @property
    def session_id(self) -> str:
        return self.summary_chunk.session_id
