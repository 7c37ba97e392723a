"""Tests for the memoir_history and memoir_expand tool surfaces."""

from __future__ import annotations

import json

import pytest

from memoir.models.chunk import ChunkMessage, ToolPart
from memoir.models.config import MemoirConfig, StoreConfig, ToolsConfig
from memoir.service import MemoirService
from memoir.tools.expand import expand_tool
from memoir.tools.history import EXPAND_HINT, history_tool, resolve_scope
from tests.conftest import make_content


class TestResolveScope:
    def test_current_session(self):
        assert resolve_scope("ses_A", False, None) == ("ses_A", "current session")

    def test_all_sessions(self):
        assert resolve_scope("ses_A", True, None) == (None, "all sessions")

    def test_explicit_ids_win(self):
        assert resolve_scope("ses_A", True, ["ses_X", "ses_Y"]) == ("ses_X", "sessions: ses_X, ses_Y")

    def test_empty_id_list_ignored(self):
        assert resolve_scope("ses_A", False, []) == ("ses_A", "current session")


class TestHistoryRecent:
    async def test_empty_current_session(self, service):
        result = json.loads(await history_tool(service, "ses_A"))
        assert result == {
            "success": True,
            "count": 0,
            "scope": "current session",
            "mode": "recent",
            "message": "No chunks found in current session",
            "hint": "Try with all_sessions: true to see past sessions",
        }

    async def test_empty_all_sessions_has_no_hint(self, service):
        result = json.loads(await history_tool(service, "ses_A", all_sessions=True))
        assert "hint" not in result
        assert result["message"] == "No chunks found in all sessions"

    async def test_lists_newest_first(self, service):
        older = await service.create_chunk("ses_A", make_content("first"))
        newer = await service.create_chunk("ses_A", make_content("second"), summary="second step")
        await service.create_chunk("ses_B", make_content("elsewhere"))

        result = json.loads(await history_tool(service, "ses_A", query="   "))

        assert result["mode"] == "recent"
        assert result["count"] == 2
        assert result["hint"] == EXPAND_HINT
        first, second = result["chunks"]
        assert first["id"] == newer.id
        assert first["summary"] == "second step"
        assert first["sessionId"] == "ses_A"
        assert first["created"].endswith("Z")
        assert second["id"] == older.id
        assert second["summary"] == "1 messages"
        assert second["stats"] == {"messages": 1, "files_modified": 0}
        assert "rank" not in first

    async def test_all_sessions_and_limit(self, service):
        for sid in ["ses_A", "ses_B", "ses_C"]:
            await service.create_chunk(sid, make_content(sid))
        result = json.loads(await history_tool(service, "ses_A", all_sessions=True, limit=2))
        assert result["scope"] == "all sessions"
        assert [c["sessionId"] for c in result["chunks"]] == ["ses_C", "ses_B"]


class TestHistorySearch:
    async def test_no_match_current_session(self, service):
        await service.create_chunk("ses_A", make_content("hello"))
        result = json.loads(await history_tool(service, "ses_A", query="kangaroo"))
        assert result["count"] == 0
        assert result["mode"] == "search"
        assert result["query"] == "kangaroo"
        assert result["message"] == 'No matches for "kangaroo" in current session'
        assert result["hint"] == "Try with all_sessions: true to search past sessions"

    async def test_hits_carry_rank_and_estimates(self, service):
        chunk = await service.create_chunk("ses_A", make_content("auth token refresh"))
        result = json.loads(await history_tool(service, "ses_A", query="auth"))

        assert result["count"] == 1
        [entry] = result["chunks"]
        assert entry["id"] == chunk.id
        assert entry["rank"] > 0
        assert result["estimated_tokens"] > 0
        assert result["estimated_expanded_tokens"] == 500
        assert "warning" not in result

    async def test_session_ids_scope(self, service):
        target = await service.create_chunk("ses_X", make_content("needle"))
        await service.create_chunk("ses_A", make_content("needle"))
        result = json.loads(await history_tool(service, "ses_A", query="needle", session_ids=["ses_X"]))
        assert result["scope"] == "sessions: ses_X"
        assert [c["id"] for c in result["chunks"]] == [target.id]

    async def test_depth_filter(self, service):
        await service.create_chunk("ses_A", make_content("parser work"))
        await service.create_chunk("ses_A", make_content("more parser work"))
        compaction = await service.compact("ses_A", "parser overhaul")

        result = json.loads(await history_tool(service, "ses_A", query="parser", depth=1))
        assert [c["id"] for c in result["chunks"]] == [compaction.summary_chunk.id]

    async def test_warning_for_many_large_results(self, service):
        for i in range(5):
            await service.create_chunk("ses_A", make_content(f"widget change {i}"))
        result = json.loads(await history_tool(service, "ses_A", query="widget"))

        assert result["count"] == 5
        assert result["estimated_expanded_tokens"] == 2_500
        assert "Expanding all 5 results" in result["warning"]

    async def test_no_warning_for_few_results(self, service):
        for i in range(3):
            await service.create_chunk("ses_A", make_content(f"widget change {i}"), summary="x" * 400)
        result = json.loads(await history_tool(service, "ses_A", query="widget"))
        assert result["estimated_expanded_tokens"] > 2_000
        assert "warning" not in result


class TestExpandTool:
    async def test_not_found(self, service):
        for preview in (False, True):
            result = json.loads(await expand_tool(service, "ch_missing", preview_only=preview))
            assert result == {"success": False, "error": "Chunk ch_missing not found"}

    async def test_full_content(self, service):
        content = make_content("Please fix the parser")
        content.messages.append(
            ChunkMessage(
                id="msg_a",
                role="assistant",
                parts=[ToolPart(tool="edit", input={"filePath": "parser.py"}, output="applied")],
            )
        )
        content.metadata.files_modified = ["parser.py"]
        content.metadata.tools_used = ["edit"]
        chunk = await service.create_chunk("ses_A", content, summary="parser fix")

        result = json.loads(await expand_tool(service, chunk.id))

        assert result["success"] is True
        assert result["chunk_count"] == 1
        text = result["content"]
        assert text.startswith(f"## Chunk {chunk.id}\nSession: ses_A\nStatus: active, Depth: 0")
        assert "### Summary\nparser fix" in text
        assert "### Messages (2)" in text
        assert "Please fix the parser" in text
        assert "**Tool: edit**" in text
        assert '"filePath": "parser.py"' in text
        assert "Output:\n```\napplied\n```" in text
        assert "### Files Modified\nparser.py" in text
        assert text.endswith("### Tools Used\nedit")
        assert result["estimated_tokens"] == -(-len(text) // 4)
        assert "warning" not in result

    async def test_children_joined_by_separator(self, service):
        await service.create_chunk("ses_A", make_content("one"))
        await service.create_chunk("ses_A", make_content("two"))
        compaction = await service.compact("ses_A", "both")

        result = json.loads(await expand_tool(service, compaction.summary_chunk.id, include_children=True))
        assert result["chunk_count"] == 3
        assert result["content"].count("\n\n---\n\n") == 2

    async def test_large_expansion_warns(self, service):
        chunk = await service.create_chunk("ses_A", make_content("word " * 4_000))
        result = json.loads(await expand_tool(service, chunk.id))
        assert result["estimated_tokens"] > 4_000
        assert result["warning"].startswith(f"Large response (~{result['estimated_tokens']} tokens)")

    async def test_tool_output_truncated(self, tmp_path):
        config = MemoirConfig(
            store=StoreConfig(db_path=str(tmp_path / "t.db")),
            tools=ToolsConfig(max_tool_output_chars=10),
        )
        async with await MemoirService.open(config) as memoir:
            content = make_content("x")
            content.messages.append(
                ChunkMessage(id="m", role="assistant", parts=[ToolPart(tool="bash", output="0123456789abcdef")])
            )
            chunk = await memoir.create_chunk("ses_A", content)
            result = json.loads(await expand_tool(memoir, chunk.id))
        assert "0123456789\n... (truncated)" in result["content"]
        assert "abcdef" not in result["content"]

    async def test_preview(self, service):
        await service.create_chunk("ses_A", make_content("a" * 400))
        await service.create_chunk("ses_A", make_content("b" * 400))
        compaction = await service.compact("ses_A", "summary text")
        summary_id = compaction.summary_chunk.id

        result = json.loads(await expand_tool(service, summary_id, include_children=True, preview_only=True))

        assert result["mode"] == "preview"
        assert result["chunk_count"] == 3
        # ceil(12/4) for the summary plus ceil(400/4) per child
        assert result["estimated_full_tokens"] == 3 + 100 + 100
        assert result["hint"] == "Use preview_only=false for full content."
        previews = result["previews"]
        assert f"## Chunk {summary_id}" in previews
        assert "- Estimated full size: ~3 tokens" in previews
        assert "### Child Chunks\n- " in previews
        assert "a" * 400 not in previews

    @pytest.mark.parametrize("threshold, expect_subagent", [(10, True), (10_000, False)])
    async def test_preview_hint_threshold(self, tmp_path, threshold, expect_subagent):
        config = MemoirConfig(
            store=StoreConfig(db_path=str(tmp_path / "p.db")),
            tools=ToolsConfig(expand_warning_tokens=threshold),
        )
        async with await MemoirService.open(config) as memoir:
            chunk = await memoir.create_chunk("ses_A", make_content("z" * 200))
            result = json.loads(await expand_tool(memoir, chunk.id, preview_only=True))
        assert ("subagent" in result["hint"]) is expect_subagent
