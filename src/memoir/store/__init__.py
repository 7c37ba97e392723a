"""Memoir persistence layer."""

from memoir.store.chunks import (
    ChunkNotFoundError,
    ChunkStore,
    DuplicateIDError,
    MemoirStoreError,
    PersistenceError,
    build_match_query,
    make_id,
)

__all__ = [
    "ChunkStore",
    "make_id",
    "build_match_query",
    "MemoirStoreError",
    "PersistenceError",
    "ChunkNotFoundError",
    "DuplicateIDError",
]
