"""Memoir event bus."""

from memoir.events.bus import EventBus, Handler, MemoirEvent
from memoir.events.payloads import (
    ChunkCreatedPayload,
    CompactionCompletedPayload,
    CompactionSkippedPayload,
    HookFailedPayload,
    PartRejectedPayload,
    SessionDeletedPayload,
)

__all__ = [
    "ChunkCreatedPayload",
    "CompactionCompletedPayload",
    "CompactionSkippedPayload",
    "EventBus",
    "Handler",
    "HookFailedPayload",
    "MemoirEvent",
    "PartRejectedPayload",
    "SessionDeletedPayload",
]
