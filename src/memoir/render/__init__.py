"""Markdown rendering for chunks."""

from memoir.render.markdown import (
    CHUNK_SEPARATOR,
    ChunkRenderer,
    describe_chunk,
    isotime,
    truncate,
)

__all__ = ["CHUNK_SEPARATOR", "ChunkRenderer", "describe_chunk", "isotime", "truncate"]
