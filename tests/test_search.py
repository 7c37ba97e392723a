"""Tests for FTS5 search ranking and filters."""

from __future__ import annotations

from memoir.models.chunk import ChunkMessage, ToolPart
from tests.conftest import make_content


class TestSearch:
    async def _fillers(self, store, session_id="ses_A", n=4):
        for i in range(n):
            await store.create_chunk(session_id, make_content(f"unrelated filler text number {i}"))

    async def test_blank_query_is_empty(self, store):
        await store.create_chunk("ses_A", make_content("anything"))
        assert await store.search("") == []
        assert await store.search("   ") == []
        assert await store.search("?!") == []

    async def test_no_match_is_empty(self, store):
        await store.create_chunk("ses_A", make_content("hello world"))
        assert await store.search("kangaroo") == []

    async def test_results_sorted_by_rank_descending(self, store):
        await self._fillers(store)
        await store.create_chunk("ses_A", make_content("parser"))
        await store.create_chunk("ses_A", make_content("parser parser tokenizer"))
        await store.create_chunk("ses_A", make_content("the tokenizer"), summary="parser rewrite")

        results = await store.search("parser tokenizer")
        ranks = [r.rank for r in results]
        assert len(results) == 3
        assert ranks == sorted(ranks, reverse=True)
        assert all(rank > 0 for rank in ranks)

    async def test_summary_outweighs_body_and_tools(self, store):
        await self._fillers(store)
        in_tools = await store.create_chunk(
            "ses_A",
            make_content("nothing here", tools=["migration"]),
        )
        in_body = await store.create_chunk("ses_A", make_content("the migration ran"))
        in_summary = await store.create_chunk(
            "ses_A", make_content("done"), summary="database migration"
        )

        results = await store.search("migration")
        assert [r.chunk.id for r in results] == [in_summary.id, in_body.id, in_tools.id]

    async def test_tool_output_is_searchable(self, store):
        content = make_content("run it")
        content.messages.append(
            ChunkMessage(
                id="msg_tool",
                role="assistant",
                parts=[ToolPart(tool="bash", input={"command": "pytest"}, output="3 failed, 12 passed")],
            )
        )
        chunk = await store.create_chunk("ses_A", content)
        assert [r.chunk.id for r in await store.search("failed")] == [chunk.id]
        assert [r.chunk.id for r in await store.search("pytest")] == [chunk.id]

    async def test_stemming_matches_word_forms(self, store):
        chunk = await store.create_chunk("ses_A", make_content("refactored the handlers"))
        assert [r.chunk.id for r in await store.search("refactoring handler")] == [chunk.id]

    async def test_any_term_matches(self, store):
        a = await store.create_chunk("ses_A", make_content("alpha"))
        b = await store.create_chunk("ses_A", make_content("beta"))
        ids = {r.chunk.id for r in await store.search("alpha beta")}
        assert ids == {a.id, b.id}

    async def test_session_filter(self, store):
        mine = await store.create_chunk("ses_A", make_content("shared keyword"))
        await store.create_chunk("ses_B", make_content("shared keyword"))

        results = await store.search("keyword", session_id="ses_A")
        assert [r.chunk.id for r in results] == [mine.id]
        assert len(await store.search("keyword")) == 2

    async def test_limit(self, store):
        for i in range(5):
            await store.create_chunk("ses_A", make_content(f"repeat word {i}"))
        assert len(await store.search("repeat", limit=3)) == 3
        assert await store.search("repeat", limit=0) == []

    async def test_default_limit_from_config(self, store):
        for i in range(12):
            await store.create_chunk("ses_A", make_content(f"lots of notes {i}"))
        assert len(await store.search("notes")) == 10

    async def test_ties_break_newest_first(self, store):
        older = await store.create_chunk("ses_A", make_content("identical text"))
        newer = await store.create_chunk("ses_A", make_content("identical text"))
        results = await store.search("identical")
        assert [r.chunk.id for r in results] == [newer.id, older.id]
        assert results[0].rank == results[1].rank
