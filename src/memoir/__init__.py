"""
Memoir: durable, searchable memory for AI coding-agent sessions.

Primary entry point::

    from memoir import MemoirService, MemoirConfig, EventRouter

    memoir = await MemoirService.open(MemoirConfig())
    router = EventRouter(memoir)
    await router.handle({"type": "session.idle", "properties": {"sessionID": "ses_1"}})
    hits = await memoir.search("auth bug", session_id="ses_1")
"""

from memoir.service import MemoirService
from memoir.models import (
    MemoirConfig,
    StoreConfig,
    SearchConfig,
    TrackingConfig,
    ToolsConfig,
    CompactionConfig,
    LoggingConfig,
    TextPart,
    ReasoningPart,
    ToolPart,
    FilePart,
    ChunkMessagePart,
    ChunkMessage,
    ChunkMetadata,
    ChunkContent,
    Chunk,
    ChunkHeader,
    SearchResult,
    CompactionResult,
)
from memoir.events.bus import EventBus, MemoirEvent
from memoir.compaction import CompactionEngine, LLMSummarizer, MetadataSummarizer, Summarizer
from memoir.hooks import EventRouter, HostClient, Note, NoteSource
from memoir.logging import configure_logging
from memoir.store import ChunkStore, make_id
from memoir.tokens.estimator import TokenEstimator, estimate_tokens
from memoir.tools import expand_tool, history_tool

__version__ = "0.1.0"

__all__ = [
    # Core
    "MemoirService",
    "ChunkStore",
    "make_id",
    # Config
    "MemoirConfig",
    "StoreConfig",
    "SearchConfig",
    "TrackingConfig",
    "ToolsConfig",
    "CompactionConfig",
    "LoggingConfig",
    "configure_logging",
    # Models
    "TextPart",
    "ReasoningPart",
    "ToolPart",
    "FilePart",
    "ChunkMessagePart",
    "ChunkMessage",
    "ChunkMetadata",
    "ChunkContent",
    "Chunk",
    "ChunkHeader",
    "SearchResult",
    "CompactionResult",
    # Events
    "EventBus",
    "MemoirEvent",
    # Compaction
    "CompactionEngine",
    "Summarizer",
    "MetadataSummarizer",
    "LLMSummarizer",
    # Host integration
    "EventRouter",
    "HostClient",
    "Note",
    "NoteSource",
    # Tools
    "history_tool",
    "expand_tool",
    # Tokens
    "TokenEstimator",
    "estimate_tokens",
]
