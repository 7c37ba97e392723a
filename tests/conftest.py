"""Shared fixtures for Memoir tests."""

from __future__ import annotations

from typing import Any

import pytest
import pytest_asyncio

from memoir.events.bus import EventBus, MemoirEvent
from memoir.models.chunk import (
    ChunkContent,
    ChunkMessage,
    ChunkMessagePart,
    ChunkMetadata,
    TextPart,
    ToolPart,
)
from memoir.models.config import MemoirConfig, StoreConfig
from memoir.service import MemoirService
from memoir.store.chunks import ChunkStore


@pytest.fixture
def config(tmp_path):
    """MemoirConfig with a temp database path."""
    return MemoirConfig(store=StoreConfig(db_path=str(tmp_path / "memoir.db")))


@pytest_asyncio.fixture
async def store(config):
    """Initialized ChunkStore backed by a temp SQLite database."""
    s = ChunkStore(config.store, config.search)
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def event_bus():
    """EventBus with a .collected list for asserting events."""
    bus = EventBus()
    collected: list[tuple[MemoirEvent, dict[str, Any]]] = []

    def _collect(event: MemoirEvent, payload: dict[str, Any]) -> None:
        collected.append((event, payload))

    bus.subscribe_all(_collect)
    bus.collected = collected  # type: ignore[attr-defined]
    return bus


@pytest_asyncio.fixture
async def service(config, event_bus):
    """Initialized MemoirService sharing the collecting event bus."""
    svc = await MemoirService.open(config, event_bus=event_bus)
    yield svc
    await svc.close()


def events_of(bus: EventBus, event: MemoirEvent) -> list[dict[str, Any]]:
    """Payloads collected on ``bus`` for one event type."""
    return [payload for ev, payload in bus.collected if ev == event]  # type: ignore[attr-defined]


def make_message(
    text: str,
    role: str = "user",
    msg_id: str = "msg_001",
    parts: list[ChunkMessagePart] | None = None,
) -> ChunkMessage:
    """Helper to create a finalized ChunkMessage with one text part."""
    return ChunkMessage(id=msg_id, role=role, parts=parts or [TextPart(text=text)])


def make_content(*texts: str, tools: list[str] | None = None) -> ChunkContent:
    """Helper to build ChunkContent: one user message per text, plus optional tool calls."""
    messages = [make_message(t, msg_id=f"msg_{i:03d}") for i, t in enumerate(texts)]
    if tools:
        messages.append(
            ChunkMessage(
                id="msg_tools",
                role="assistant",
                parts=[ToolPart(tool=name, input={"q": name}, output=f"{name} ok") for name in tools],
            )
        )
    return ChunkContent(
        messages=messages,
        metadata=ChunkMetadata(tools_used=list(tools or [])),
    )


def host_part(
    session_id: str,
    message_id: str,
    part_id: str,
    part_type: str = "text",
    **fields: Any,
) -> dict[str, Any]:
    """Helper to build a raw ``message.part.updated`` host event."""
    part = {
        "id": part_id,
        "sessionID": session_id,
        "messageID": message_id,
        "type": part_type,
        **fields,
    }
    return {"type": "message.part.updated", "properties": {"part": part}}


def host_message(session_id: str, message_id: str, role: str = "assistant") -> dict[str, Any]:
    """Helper to build a raw ``message.updated`` host event."""
    info = {"id": message_id, "sessionID": session_id, "role": role}
    return {"type": "message.updated", "properties": {"info": info}}
