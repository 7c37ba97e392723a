"""
Example 01: Basic Session
=========================

Demonstrates the core MemoirService lifecycle:
- Streaming message parts into drafts with ensure_message()/add_part()
- Flushing drafts into a chunk with finalize()
- Ranked full-text search across stored chunks
- Compacting a session into one summary chunk
- Expanding a summary back into its children

Run:
    uv run python examples/01_basic_session.py
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path when running directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


async def main() -> None:
    from memoir import MemoirConfig, MemoirService, StoreConfig, TextPart, ToolPart

    print("=== Memoir Basic Session Example ===\n")

    config = MemoirConfig(store=StoreConfig(db_path="/tmp/memoir_example_01.db"))

    async with await MemoirService.open(config) as memoir:
        session_id = "ses_example_01"

        turns = [
            ("Add retry logic to the HTTP client", "client.py"),
            ("Write tests for the retry backoff", "test_client.py"),
            ("Document the new retry settings", "README.md"),
        ]
        for i, (request, path) in enumerate(turns, 1):
            await memoir.ensure_message(session_id, f"msg_u{i}", "user")
            await memoir.add_part(session_id, f"msg_u{i}", f"prt_u{i}", TextPart(text=request))
            await memoir.ensure_message(session_id, f"msg_a{i}", "assistant")
            await memoir.add_part(
                session_id,
                f"msg_a{i}",
                f"prt_a{i}",
                ToolPart(tool="edit", input={"filePath": path}, output="applied"),
            )
            chunk = await memoir.finalize(session_id)
            print(f"Turn {i}: stored {chunk.id} ({chunk.message_count} messages)")

        print("\nSearch 'retry tests':")
        for hit in await memoir.search("retry tests", session_id=session_id):
            first = hit.chunk.content.messages[0].text_content()
            print(f"  {hit.chunk.id}  rank={hit.rank:.3f}  {first}")

        result = await memoir.compact(session_id, "Added HTTP retries with tests and docs")
        if result is not None:
            summary = result.summary_chunk
            print(f"\nCompacted {len(result.compacted_chunks)} chunks into {summary.id}")
            print(f"  depth={summary.depth}  files={summary.content.metadata.files_modified}")

            expanded = await memoir.expand(summary.id, include_children=True)
            print(f"  expands to {len(expanded)} chunks")

    print("\nService closed cleanly.")


if __name__ == "__main__":
    asyncio.run(main())
