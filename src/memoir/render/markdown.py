"""Markdown rendering of chunks for tool output and context injection."""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from jinja2 import Environment, PackageLoader, StrictUndefined

from memoir.models.chunk import (
    Chunk,
    ChunkHeader,
    ChunkMessagePart,
    FilePart,
    ReasoningPart,
    TextPart,
    ToolPart,
)
from memoir.models.config import ToolsConfig

CHUNK_SEPARATOR = "\n\n---\n\n"
TRUNCATION_MARKER = "\n... (truncated)"


def isotime(seconds: int) -> str:
    """Format unix seconds as an ISO-8601 UTC timestamp with a ``Z`` suffix."""
    stamp = datetime.fromtimestamp(seconds, tz=timezone.utc)
    return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def isodate(seconds: int) -> str:
    return datetime.fromtimestamp(seconds, tz=timezone.utc).date().isoformat()


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER


def describe_chunk(chunk: Chunk) -> str:
    """One-line description: the summary, or a metadata digest when there is none."""
    if chunk.summary:
        return chunk.summary
    metadata = chunk.content.metadata
    tools = ", ".join(metadata.tools_used) or "none"
    return (
        f"{chunk.message_count} messages, tools: {tools},"
        f" {len(metadata.files_modified)} files modified,"
        f" outcome: {metadata.outcome or 'unknown'}"
    )


class ChunkRenderer:
    """
    Renders chunks, previews and injected context blocks from Jinja2 templates.

    Templates live in ``memoir/render/templates``; tool inputs and outputs are
    truncated to the limits in :class:`ToolsConfig`.
    """

    def __init__(self, config: ToolsConfig | None = None) -> None:
        self._config = config or ToolsConfig()
        self._env = Environment(
            loader=PackageLoader("memoir.render", "templates"),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=False,
            undefined=StrictUndefined,
        )
        self._env.filters["isotime"] = isotime
        self._env.filters["isodate"] = isodate

    def _render(self, template: str, **context: Any) -> str:
        return self._env.get_template(template).render(**context).rstrip()

    def format_part(self, part: ChunkMessagePart) -> str:
        """Render one message part as markdown. Empty parts render as ``""``."""
        match part:
            case TextPart():
                return part.text
            case ReasoningPart():
                return f"[Reasoning: {part.text}]" if part.text else ""
            case ToolPart():
                lines = [f"**Tool: {part.tool}**"]
                if part.input:
                    tool_input = truncate(
                        json.dumps(part.input, indent=2, ensure_ascii=False),
                        self._config.max_tool_input_chars,
                    )
                    lines.append(f"Input:\n```json\n{tool_input}\n```")
                if part.output:
                    tool_output = truncate(part.output, self._config.max_tool_output_chars)
                    lines.append(f"Output:\n```\n{tool_output}\n```")
                return "\n".join(lines)
            case FilePart():
                return f"[File: {part.text}]" if part.text else ""
            case _:
                return ""

    def chunk(self, chunk: Chunk) -> str:
        """Full markdown for one chunk: header, summary, messages, files and tools."""
        return self._render("chunk.md.j2", chunk=chunk, format_part=self.format_part)

    def chunks(self, chunks: Sequence[Chunk]) -> str:
        return CHUNK_SEPARATOR.join(self.chunk(c) for c in chunks)

    def preview(self, header: ChunkHeader, estimated_tokens: int) -> str:
        """Header-only markdown: summary, stats, estimated full size and child ids."""
        return self._render("preview.md.j2", header=header, estimated_tokens=estimated_tokens)

    def previews(self, headers: Sequence[tuple[ChunkHeader, int]]) -> str:
        return CHUNK_SEPARATOR.join(self.preview(h, tokens) for h, tokens in headers)

    def compaction_context(self, chunks: Sequence[Chunk]) -> str:
        return self._render("compaction_context.md.j2", chunks=chunks, describe=describe_chunk)

    def session_start(self, notes: Sequence[Any], chunks: Sequence[Chunk]) -> str:
        return self._render(
            "session_start.md.j2",
            notes=notes,
            chunks=chunks,
            describe=describe_chunk,
        )
