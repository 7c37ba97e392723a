"""
Example 02: Host Event Feed
===========================

Demonstrates wiring Memoir to a coding agent's event stream:
- Feeding raw host events through EventRouter.handle()
- Incomplete tool calls being rejected until they complete
- Reacting to Memoir's own lifecycle events on the EventBus
- Answering the memoir_history and memoir_expand tools

Run:
    uv run python examples/02_host_events.py
"""

import asyncio
import json
import sys
from pathlib import Path

# Add project root to path when running directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


def part_event(session_id: str, message_id: str, part_id: str, **fields: object) -> dict:
    part = {"id": part_id, "sessionID": session_id, "messageID": message_id, **fields}
    return {"type": "message.part.updated", "properties": {"part": part}}


async def main() -> None:
    from memoir import (
        EventBus,
        EventRouter,
        MemoirConfig,
        MemoirEvent,
        MemoirService,
        StoreConfig,
        configure_logging,
        expand_tool,
        history_tool,
    )

    configure_logging()
    print("=== Memoir Host Event Example ===\n")

    bus = EventBus()
    bus.subscribe(
        MemoirEvent.CHUNK_CREATED,
        lambda event, payload: print(f"  [bus] chunk {payload['chunk_id']} created"),
    )
    bus.subscribe(
        MemoirEvent.PART_REJECTED,
        lambda event, payload: print(f"  [bus] part {payload['part_id']} rejected: {payload['reason']}"),
    )

    config = MemoirConfig(store=StoreConfig(db_path="/tmp/memoir_example_02.db"))
    async with await MemoirService.open(config, event_bus=bus) as memoir:
        router = EventRouter(memoir)
        sid = "ses_example_02"

        events = [
            {"type": "message.updated", "properties": {"info": {"id": "m1", "sessionID": sid, "role": "user"}}},
            part_event(sid, "m1", "p1", type="text", text="Why does the build fail?"),
            {"type": "message.updated", "properties": {"info": {"id": "m2", "sessionID": sid, "role": "assistant"}}},
            part_event(sid, "m2", "p2", type="tool", tool="bash", state={"status": "running", "input": {"command": "make"}}),
            part_event(
                sid,
                "m2",
                "p2",
                type="tool",
                tool="bash",
                state={"status": "completed", "input": {"command": "make"}, "output": "missing header zlib.h"},
            ),
            part_event(sid, "m2", "p3", type="text", text="The build needs zlib headers installed."),
            {"type": "session.idle", "properties": {"sessionID": sid}},
        ]
        for event in events:
            await router.handle(event)

        history = json.loads(await history_tool(memoir, sid, query="zlib build"))
        print(f"\nmemoir_history found {history['count']} chunk(s)")
        chunk_id = history["chunks"][0]["id"]

        preview = json.loads(await expand_tool(memoir, chunk_id, preview_only=True))
        print(f"memoir_expand preview: ~{preview['estimated_full_tokens']} tokens\n")
        print(json.loads(await expand_tool(memoir, chunk_id))["content"])


if __name__ == "__main__":
    asyncio.run(main())
