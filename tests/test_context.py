"""Tests for injected context blocks and markdown rendering."""

from __future__ import annotations

from memoir.hooks.context import Note, compaction_context, session_start_context
from memoir.models.chunk import (
    Chunk,
    ChunkContent,
    ChunkHeader,
    ChunkMetadata,
    FilePart,
    ReasoningPart,
    TextPart,
    ToolPart,
)
from memoir.models.config import ToolsConfig
from memoir.render.markdown import ChunkRenderer, describe_chunk, isodate, isotime, truncate
from memoir.tokens.estimator import TokenEstimator, estimate_tokens
from tests.conftest import make_content


class FakeNotes:
    def __init__(self, notes: list[Note]) -> None:
        self.notes = notes
        self.queries: list[str] = []

    async def search_relevant(self, text: str) -> list[Note]:
        self.queries.append(text)
        return self.notes


class TestCompactionContext:
    async def test_no_active_chunks(self, service):
        assert await compaction_context(service, "ses_A") is None

    async def test_lists_active_chunks(self, service):
        first = await service.create_chunk("ses_A", make_content("one", tools=["edit"]))
        second = await service.create_chunk("ses_A", make_content("two"), summary="Added tests")

        block = await compaction_context(service, "ses_A")

        assert block.startswith("## Session History (Memoir)\n")
        assert f"[{first.id}]: 2 messages, tools: edit, 0 files modified, outcome: unknown" in block
        assert f"[{second.id}]: Added tests" in block
        assert "[ch_xxx]" in block
        assert block.endswith("using the memoir_expand tool.")


class TestSessionStartContext:
    async def test_injected_once(self, service):
        await service.create_chunk("ses_old", make_content("a"))
        await service.create_chunk("ses_old", make_content("b"))
        compaction = await service.compact("ses_old", "Built the importer")

        block = await session_start_context(service, "ses_new", "Continue the importer")
        assert "## Recent Session History" in block
        assert f"- [{compaction.summary_chunk.id}] (" in block
        assert "): Built the importer" in block
        assert block.rstrip().endswith("consider delegating to a subagent.")

        assert await session_start_context(service, "ses_new", "again") is None

    async def test_blank_message_does_not_claim(self, service):
        notes = FakeNotes([Note(type="preference", content="Use tabs")])
        assert await session_start_context(service, "ses_A", "   ", notes) is None
        assert notes.queries == []
        assert await session_start_context(service, "ses_A", "hello", notes) is not None

    async def test_nothing_relevant(self, service):
        assert await session_start_context(service, "ses_A", "hello") is None
        assert await session_start_context(service, "ses_A", "hello", FakeNotes([])) is None

    async def test_notes_only(self, service):
        notes = FakeNotes([Note(type="gotcha", content="CI needs Node 20")])
        block = await session_start_context(service, "ses_A", "fix ci", notes)

        assert block.startswith("## Project Memory (Memoir)\n")
        assert "- [gotcha] CI needs Node 20" in block
        assert "## Recent Session History" not in block
        assert "## Memoir Tools" in block
        assert notes.queries == ["fix ci"]


class TestChunkRenderer:
    def test_format_parts(self):
        renderer = ChunkRenderer()
        assert renderer.format_part(TextPart(text="hi")) == "hi"
        assert renderer.format_part(ReasoningPart(text="hmm")) == "[Reasoning: hmm]"
        assert renderer.format_part(FilePart(text="a.png")) == "[File: a.png]"
        assert renderer.format_part(ToolPart(tool="ls")) == "**Tool: ls**"

    def test_tool_input_truncated(self):
        renderer = ChunkRenderer(ToolsConfig(max_tool_input_chars=20))
        text = renderer.format_part(ToolPart(tool="write", input={"content": "x" * 100}))
        assert "... (truncated)" in text
        assert "x" * 100 not in text

    def test_chunk_without_optional_sections(self):
        chunk = Chunk(id="ch_1", session_id="ses_A", content=make_content("plain"), created_at=0)
        text = ChunkRenderer().chunk(chunk)
        assert "### Summary" not in text
        assert "### Files Modified" not in text
        assert "### Tools Used" not in text
        assert "**user** (" in text
        assert text.endswith("plain")

    def test_preview(self):
        header = ChunkHeader(
            id="ch_s",
            session_id="ses_A",
            summary="merged work",
            depth=1,
            child_refs=["ch_a", "ch_b"],
            created_at=0,
            metadata=ChunkMetadata(tools_used=["read"], files_modified=["x.py"]),
            message_count=0,
        )
        text = ChunkRenderer().preview(header, 42)
        assert text == (
            "## Chunk ch_s\n"
            "Session: ses_A\n"
            "Status: active, Depth: 1\n"
            "Created: 1970-01-01T00:00:00.000Z\n"
            "\n"
            "### Summary\n"
            "merged work\n"
            "\n"
            "### Stats\n"
            "- Messages: 0\n"
            "- Files modified: 1\n"
            "- Tools used: read\n"
            "- Estimated full size: ~42 tokens\n"
            "\n"
            "### Child Chunks\n"
            "- ch_a\n"
            "- ch_b"
        )

    def test_describe_chunk(self):
        bare = Chunk(
            id="ch_1",
            session_id="s",
            content=ChunkContent(metadata=ChunkMetadata(files_modified=["a", "b"], outcome="success")),
        )
        assert describe_chunk(bare) == "0 messages, tools: none, 2 files modified, outcome: success"
        assert describe_chunk(bare.model_copy(update={"summary": "sum"})) == "sum"


class TestHelpers:
    def test_time_formats(self):
        assert isotime(1_700_000_000) == "2023-11-14T22:13:20.000Z"
        assert isodate(1_700_000_000) == "2023-11-14"

    def test_truncate(self):
        assert truncate("short", 10) == "short"
        assert truncate("abcdef", 3) == "abc\n... (truncated)"

    def test_estimates(self):
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcde") == 2
        estimator = TokenEstimator()
        assert estimator.estimate_expansion(None) == 500
        assert estimator.estimate_expansion("x" * 200) == 1_000
        header = ChunkHeader(id="ch", session_id="s", summary="abcd", content_chars=9)
        assert estimator.estimate_header(header) == 4
