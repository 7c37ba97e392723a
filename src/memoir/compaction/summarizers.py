"""Fallback summary strategies used when the host supplies no narrative."""

from __future__ import annotations

import os
from typing import Any, Protocol

import structlog

from memoir.models.chunk import Chunk, TextPart, ToolPart
from memoir.models.config import CompactionConfig

_logger = structlog.get_logger("memoir.compaction.summarizers")


class Summarizer(Protocol):
    """Produces summary text for a set of chunks about to be compacted."""

    async def summarize(self, chunks: list[Chunk]) -> str: ...


def _unique(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))


class MetadataSummarizer:
    """
    Deterministic summary built from chunk metadata.

    Output looks like ``"7 messages across 3 chunks; tools: read, edit;
    files: a.py, b.py, c.py +2 more"``. Tool and file segments are omitted
    when empty.
    """

    def __init__(self, max_files_listed: int = 3) -> None:
        self.max_files_listed = max_files_listed

    def describe(self, chunks: list[Chunk]) -> str:
        total_messages = sum(chunk.message_count for chunk in chunks)
        tools = _unique([t for chunk in chunks for t in chunk.content.metadata.tools_used])
        files = _unique([f for chunk in chunks for f in chunk.content.metadata.files_modified])

        segments = [f"{total_messages} messages across {len(chunks)} chunks"]
        if tools:
            segments.append(f"tools: {', '.join(tools)}")
        if files:
            shown = ", ".join(files[: self.max_files_listed])
            extra = len(files) - self.max_files_listed
            segments.append(f"files: {shown} +{extra} more" if extra > 0 else f"files: {shown}")
        return "; ".join(segments)

    async def summarize(self, chunks: list[Chunk]) -> str:
        return self.describe(chunks)


# ── LLM summarizer ─────────────────────────────────────────────────────────────

SUMMARY_PROMPT = """\
You are summarising part of a coding session so it can be found again later.
Write 2-5 sentences covering the goal, what was done, and which files changed.
Mention chunk ids in square brackets where a detail lives, e.g. [ch_...].
Output only the summary."""

_MAX_TRANSCRIPT_CHARS = 24_000


def _make_llm_call(model: str) -> Any:
    """Return an async function that calls an LLM for chunk summaries."""

    async def _call(*, model: str = model, messages: list[dict[str, str]], max_tokens: int) -> str:
        if os.environ.get("MEMOIR_MOCK_LLM") == "1":
            content = messages[0]["content"] if messages else ""
            chunk_ids = [ln.split()[1] for ln in content.splitlines() if ln.startswith("### ch_")]
            return f"Mock summary of {len(chunk_ids)} chunks: " + " ".join(
                f"[{cid}]" for cid in chunk_ids
            )

        import litellm

        response = await litellm.acompletion(
            model=model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=0.2,
        )
        return response.choices[0].message.content or ""

    return _call


def _chunk_transcript(chunks: list[Chunk]) -> str:
    sections: list[str] = []
    for chunk in chunks:
        lines = [f"### {chunk.id}"]
        if chunk.summary:
            lines.append(f"Summary: {chunk.summary}")
        for message in chunk.content.messages:
            for part in message.parts:
                if isinstance(part, TextPart):
                    lines.append(f"{message.role}: {part.text[:1_000]}")
                elif isinstance(part, ToolPart):
                    lines.append(f"[tool {part.tool}] {(part.output or '')[:300]}")
        sections.append("\n".join(lines))
    return "\n\n".join(sections)[:_MAX_TRANSCRIPT_CHARS]


class LLMSummarizer:
    """
    Summarize chunks with an LLM through litellm.

    Any failure or blank response falls back to :class:`MetadataSummarizer`,
    so compaction never fails because a model call did.

    Set ``MEMOIR_MOCK_LLM=1`` to return a deterministic summary without a
    network call.
    """

    def __init__(
        self,
        model: str,
        *,
        fallback: MetadataSummarizer | None = None,
        llm_call: Any = None,
        max_tokens: int = 400,
    ) -> None:
        self.model = model
        self.fallback = fallback or MetadataSummarizer()
        self.max_tokens = max_tokens
        self._llm_call = llm_call or _make_llm_call(model)

    async def summarize(self, chunks: list[Chunk]) -> str:
        prompt_messages = [
            {
                "role": "user",
                "content": f"{SUMMARY_PROMPT}\n\n{_chunk_transcript(chunks)}",
            }
        ]
        try:
            text = await self._llm_call(
                model=self.model,
                messages=prompt_messages,
                max_tokens=self.max_tokens,
            )
        except Exception as exc:
            _logger.warning("llm_summary_failed", model=self.model, error=str(exc))
            return self.fallback.describe(chunks)
        if not text or not text.strip():
            _logger.warning("llm_summary_empty", model=self.model)
            return self.fallback.describe(chunks)
        return text.strip()


def make_summarizer(config: CompactionConfig) -> Summarizer:
    """Build the summarizer selected by ``config.summarizer``."""
    metadata = MetadataSummarizer(max_files_listed=config.max_files_listed)
    if config.summarizer == "llm" and config.summary_model:
        return LLMSummarizer(config.summary_model, fallback=metadata)
    return metadata
