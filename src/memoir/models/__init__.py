"""Memoir data models."""

from memoir.models.chunk import (
    Chunk,
    ChunkContent,
    ChunkHeader,
    ChunkMessage,
    ChunkMessagePart,
    ChunkMetadata,
    ChunkStatus,
    CompactionResult,
    FilePart,
    ReasoningPart,
    Role,
    SearchResult,
    TextPart,
    ToolPart,
)
from memoir.models.config import (
    CompactionConfig,
    LoggingConfig,
    MemoirConfig,
    SearchConfig,
    StoreConfig,
    ToolsConfig,
    TrackingConfig,
)
from memoir.models.events import (
    HostEvent,
    HostMessageInfo,
    HostPart,
    HostToolState,
    MessagePartUpdated,
    MessageUpdated,
    SessionCompacted,
    SessionDeleted,
    SessionIdle,
    UnknownEvent,
    parse_host_event,
)

__all__ = [
    # Config
    "CompactionConfig",
    "LoggingConfig",
    "MemoirConfig",
    "SearchConfig",
    "StoreConfig",
    "ToolsConfig",
    "TrackingConfig",
    # Message parts
    "TextPart",
    "ReasoningPart",
    "ToolPart",
    "FilePart",
    "ChunkMessagePart",
    # Chunks
    "Role",
    "ChunkStatus",
    "ChunkMessage",
    "ChunkMetadata",
    "ChunkContent",
    "Chunk",
    "ChunkHeader",
    # Results
    "SearchResult",
    "CompactionResult",
    # Host events
    "HostEvent",
    "HostMessageInfo",
    "HostPart",
    "HostToolState",
    "SessionIdle",
    "SessionCompacted",
    "SessionDeleted",
    "MessageUpdated",
    "MessagePartUpdated",
    "UnknownEvent",
    "parse_host_event",
]
